"""File content decoding tolerant of mixed and unknown encodings."""

from __future__ import annotations

import logging
from pathlib import Path

__all__ = [
    'ENCODINGS',
    'decode_text',
    'read_text',
]

logger = logging.getLogger(__name__)

# Tried in order; the first acceptable decode wins
ENCODINGS = ('utf-8', 'gbk', 'gb2312', 'latin-1')

REPLACEMENT_CHAR = '\ufffd'

# Below this many characters, judge by absolute replacement count
SHORT_TEXT_LENGTH = 100
MAX_SHORT_REPLACEMENTS = 5
MAX_REPLACEMENT_RATIO = 0.05


def read_text(path: Path) -> str:
    """Read a file once and decode it.

    Raises:
        OSError: If the file cannot be read.
    """
    return decode_text(path.read_bytes(), source=path)


def decode_text(data: bytes, *, source: Path | None = None) -> str:
    """Decode bytes with the first encoding that yields few replacement markers.

    Falls back to UTF-8 with replacement markers rather than failing, so one
    badly encoded file never aborts indexing.
    """
    for encoding in ENCODINGS:
        text = data.decode(encoding, errors='replace')
        if _is_acceptable(text):
            if encoding != ENCODINGS[0]:
                logger.debug(f'[READ] {source or "<bytes>"}: decoded as {encoding}')
            return text

    logger.debug(f'[READ] {source or "<bytes>"}: no clean decoding, using {ENCODINGS[0]} with replacements')
    return data.decode(ENCODINGS[0], errors='replace')


def _is_acceptable(text: str) -> bool:
    if not text:
        return True
    replacements = text.count(REPLACEMENT_CHAR)
    if len(text) < SHORT_TEXT_LENGTH:
        return replacements <= MAX_SHORT_REPLACEMENTS
    return replacements / len(text) <= MAX_REPLACEMENT_RATIO
