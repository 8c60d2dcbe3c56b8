"""Tests for line-bounded splitting of files into blobs."""

from __future__ import annotations

import hashlib
import math

import pytest

from codebase_context.schemas.blobs import Blob, blob_name
from codebase_context.services.chunking import split_file, split_lines

TEXTS = [
    '',
    'single line without terminator',
    'one\n',
    'a\nb\nc\n',
    'a\nb\nc',
    'windows\r\nline\r\nendings\r\n',
    'old\rmac\rendings',
    'mixed\nterminators\r\nhere\rand\n\n\nblank lines\n',
    ''.join(f'row {i}\n' for i in range(57)),
]


class TestSplitLines:
    """Verify only CR, LF and CRLF terminate lines."""

    def test_terminators_stay_attached(self) -> None:
        assert split_lines('a\rb\r\nc\nd') == ['a\r', 'b\r\n', 'c\n', 'd']

    def test_blank_lines_are_lines(self) -> None:
        assert split_lines('\n\n') == ['\n', '\n']

    @pytest.mark.parametrize('separator', ['\f', '\v', '\x1c', ' ', '\x85'])
    def test_other_separators_do_not_split(self, separator: str) -> None:
        assert split_lines(f'left{separator}right\n') == [f'left{separator}right\n']

    def test_empty_text_has_no_lines(self) -> None:
        assert split_lines('') == []


class TestSplitFile:
    """Verify chunk naming, counts, and exact reconstruction."""

    @pytest.mark.parametrize('text', TEXTS)
    @pytest.mark.parametrize('max_lines', [1, 2, 3, 7, 1000])
    def test_chunks_reconstruct_text(self, text: str, max_lines: int) -> None:
        blobs = split_file('src/module.py', text, max_lines)
        assert ''.join(blob.content for blob in blobs) == text

    @pytest.mark.parametrize(
        'line_count, max_lines',
        [(2500, 800), (800, 800), (801, 800), (10, 3), (9, 3), (1, 1), (5, 1)],
    )
    def test_chunk_count(self, line_count: int, max_lines: int) -> None:
        text = ''.join(f'{i}\n' for i in range(line_count))
        blobs = split_file('big.txt', text, max_lines)
        expected = 1 if line_count <= max_lines else math.ceil(line_count / max_lines)
        assert len(blobs) == expected

    def test_small_file_keeps_original_path(self) -> None:
        assert split_file('docs/readme.md', 'hello\n', 800) == [Blob(path='docs/readme.md', content='hello\n')]

    def test_chunk_paths_are_one_indexed(self) -> None:
        blobs = split_file('src/app.ts', 'a\nb\nc\nd\ne\n', 2)
        assert [blob.path for blob in blobs] == [
            'src/app.ts#chunk1of3',
            'src/app.ts#chunk2of3',
            'src/app.ts#chunk3of3',
        ]
        assert blobs[-1].content == 'e\n'

    def test_deterministic(self) -> None:
        text = ''.join(f'{i}\n' for i in range(100))
        assert split_file('x.py', text, 30) == split_file('x.py', text, 30)

    @pytest.mark.parametrize('max_lines', [0, -1])
    def test_rejects_non_positive_limit(self, max_lines: int) -> None:
        with pytest.raises(ValueError, match='max_lines_per_blob'):
            split_file('x.py', 'a\n', max_lines)


class TestBlobName:
    """Verify content addressing."""

    def test_matches_concatenated_digest(self) -> None:
        expected = hashlib.sha256(b'a.py' + b'print(1)\n').hexdigest()
        assert blob_name('a.py', 'print(1)\n') == expected
        assert Blob(path='a.py', content='print(1)\n').blob_name == expected

    def test_same_inputs_same_name(self) -> None:
        assert blob_name('a.py', 'x = 1\n') == blob_name('a.py', 'x = 1\n')

    @pytest.mark.parametrize(
        'other_path, other_content',
        [('b.py', 'x = 1\n'), ('a.py', 'x = 2\n'), ('a.py#chunk1of2', 'x = 1\n')],
    )
    def test_different_path_or_content_differs(self, other_path: str, other_content: str) -> None:
        assert blob_name('a.py', 'x = 1\n') != blob_name(other_path, other_content)

    def test_non_ascii_encoded_as_utf8(self) -> None:
        assert blob_name('文档.md', '内容') != blob_name('文档.md', '内容 ')
