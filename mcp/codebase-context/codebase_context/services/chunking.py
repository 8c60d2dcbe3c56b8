"""Line-bounded splitting of file text into blobs.

Only CRLF, CR and LF terminate lines (str.splitlines also splits on form
feeds, unicode separators, etc.). Terminators stay attached to their line, so
joining the chunks reproduces the text exactly.
"""

from __future__ import annotations

import math
import re

from codebase_context.schemas.blobs import Blob

__all__ = [
    'split_file',
    'split_lines',
]

_LINE = re.compile(r'[^\r\n]*(?:\r\n|\r|\n)|[^\r\n]+')


def split_lines(text: str) -> list[str]:
    """Split text into lines, each keeping its terminator."""
    return _LINE.findall(text)


def split_file(path: str, text: str, max_lines_per_blob: int) -> list[Blob]:
    """Split one file into blobs of at most max_lines_per_blob lines.

    Files that fit return a single blob under the original path. Larger files
    return ceil(lines / max) blobs named path#chunk{i}of{n}, 1-indexed.
    Deterministic: unchanged text always produces identical blobs.

    Raises:
        ValueError: If max_lines_per_blob is less than 1.
    """
    if max_lines_per_blob < 1:
        raise ValueError(f'max_lines_per_blob must be >= 1, got {max_lines_per_blob}')

    lines = split_lines(text)
    if len(lines) <= max_lines_per_blob:
        return [Blob(path=path, content=text)]

    num_chunks = math.ceil(len(lines) / max_lines_per_blob)
    return [
        Blob(
            path=f'{path}#chunk{index + 1}of{num_chunks}',
            content=''.join(lines[index * max_lines_per_blob : (index + 1) * max_lines_per_blob]),
        )
        for index in range(num_chunks)
    ]
