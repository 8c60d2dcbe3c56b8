"""File discovery - decides which project files are indexed and turns them into blobs.

Traversal is sequential and synchronous: local disk is not the bottleneck,
and only network calls run concurrently.
"""

from __future__ import annotations

import fnmatch
import logging
import os
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

import pathspec

from codebase_context.schemas.blobs import Blob
from codebase_context.schemas.config import ContextConfig
from codebase_context.services.chunking import split_file
from codebase_context.services.content import read_text

__all__ = [
    'DiscoveryResult',
    'PathClassifier',
    'discover_blobs',
]

logger = logging.getLogger(__name__)

IGNORE_FILE_NAME = '.gitignore'


class PathClassifier:
    """Eligibility rules for filesystem entries under a project root.

    Decision order:
    1. Ignore-file rules (gitignore syntax). Directories are tested with a
       trailing slash so directory-only patterns apply.
    2. Static exclusion globs, against every path segment and the whole
       relative path.
    3. Files only: the extension must be in the allow-list.

    An error while testing a path counts as "not excluded" so one bad entry
    never blocks traversal.
    """

    def __init__(
        self,
        project_root: Path,
        *,
        text_extensions: Sequence[str],
        exclude_patterns: Sequence[str],
        ignore_spec: pathspec.PathSpec | None = None,
    ) -> None:
        self._root = project_root
        self._extensions = frozenset(ext.lower() for ext in text_extensions)
        self._exclude_patterns = tuple(exclude_patterns)
        self._ignore_spec = ignore_spec

    @classmethod
    def from_config(cls, project_root: Path, config: ContextConfig) -> PathClassifier:
        """Create classifier with the project's ignore file, if it has one."""
        return cls(
            project_root,
            text_extensions=config.text_extensions,
            exclude_patterns=config.exclude_patterns,
            ignore_spec=load_ignore_spec(project_root),
        )

    def should_index(self, path: Path, is_directory: bool) -> bool:
        """Whether to descend into a directory, or read a file."""
        if self.is_excluded(path, is_directory):
            return False
        if is_directory:
            return True
        return self.has_text_extension(path)

    def has_text_extension(self, path: Path) -> bool:
        return path.suffix.lower() in self._extensions

    def is_excluded(self, path: Path, is_directory: bool) -> bool:
        try:
            relative = PurePosixPath(path.relative_to(self._root).as_posix())
            relative_str = str(relative)

            if self._ignore_spec is not None:
                candidate = f'{relative_str}/' if is_directory else relative_str
                if self._ignore_spec.match_file(candidate):
                    return True

            for pattern in self._exclude_patterns:
                if fnmatch.fnmatchcase(relative_str, pattern):
                    return True
                if any(fnmatch.fnmatchcase(part, pattern) for part in relative.parts):
                    return True
            return False
        except (OSError, ValueError) as e:
            logger.debug(f'[SCAN] Could not classify {path}, treating as not excluded: {e}')
            return False


def load_ignore_spec(project_root: Path) -> pathspec.PathSpec | None:
    """Parse the project's .gitignore. Missing or unreadable returns None."""
    ignore_path = project_root / IGNORE_FILE_NAME
    if not ignore_path.is_file():
        return None
    try:
        lines = ignore_path.read_text(encoding='utf-8', errors='replace').splitlines()
    except OSError as e:
        logger.warning(f'[SCAN] Ignoring unreadable {ignore_path}: {e}')
        return None
    return pathspec.GitIgnoreSpec.from_lines(lines)


@dataclass
class DiscoveryResult:
    """Blobs found in one traversal plus counters for logging."""

    blobs: list[Blob] = field(default_factory=list)
    files_indexed: int = 0
    entries_excluded: int = 0
    files_unreadable: int = 0


def discover_blobs(project_root: Path, config: ContextConfig) -> DiscoveryResult:
    """Walk the project tree, reading and chunking every eligible file.

    Directory and file order is sorted, so blob order is stable across runs.
    Unreadable files are logged and skipped.
    """
    classifier = PathClassifier.from_config(project_root, config)
    result = DiscoveryResult()

    def on_walk_error(error: OSError) -> None:
        logger.warning(f'[SCAN] Cannot list {error.filename}: {error.strerror}')

    for root, dirnames, filenames in os.walk(project_root, onerror=on_walk_error):
        root_path = Path(root)

        kept_dirs = []
        for dirname in sorted(dirnames):
            if classifier.should_index(root_path / dirname, is_directory=True):
                kept_dirs.append(dirname)
            else:
                result.entries_excluded += 1
        dirnames[:] = kept_dirs

        for filename in sorted(filenames):
            file_path = root_path / filename
            if classifier.is_excluded(file_path, is_directory=False):
                result.entries_excluded += 1
                continue
            if not classifier.has_text_extension(file_path) or not file_path.is_file():
                continue

            try:
                text = read_text(file_path)
            except OSError as e:
                logger.warning(f'[SCAN] Skipping unreadable file {file_path}: {e}')
                result.files_unreadable += 1
                continue

            relative = file_path.relative_to(project_root).as_posix()
            result.blobs.extend(split_file(relative, text, config.max_lines_per_blob))
            result.files_indexed += 1

    logger.info(
        f'[SCAN] {project_root}: {result.files_indexed} files, {len(result.blobs)} blobs '
        f'({result.entries_excluded} excluded, {result.files_unreadable} unreadable)'
    )
    return result
