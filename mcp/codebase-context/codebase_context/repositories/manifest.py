"""File-backed manifest of blob names known to the retrieval service.

One JSON array per project. Reads never fail: a missing or corrupt manifest
is an empty baseline, which only costs a full re-upload. Writes replace the
file atomically under a lock.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from pathlib import Path

import filelock
import pydantic

from codebase_context import paths
from codebase_context.errors import PersistenceError

__all__ = [
    'ManifestStore',
]

logger = logging.getLogger(__name__)

_manifest_adapter: pydantic.TypeAdapter[list[str]] = pydantic.TypeAdapter(list[str])


class ManifestStore:
    """Persistence boundary for per-project manifests. No business logic."""

    def __init__(self, base_dir: Path = paths.DATA_DIR) -> None:
        self._base_dir = base_dir

    def manifest_path(self, project_root: Path) -> Path:
        """Location of the manifest file for a project."""
        return paths.manifest_path(project_root, self._base_dir)

    def load(self, project_root: Path) -> list[str]:
        """Load blob names. Returns [] if the manifest is missing or unreadable."""
        try:
            path = self.manifest_path(project_root)
            if not path.exists():
                return []
            return _manifest_adapter.validate_json(path.read_bytes())
        except (OSError, pydantic.ValidationError) as e:
            logger.warning(f'[MANIFEST] Ignoring unreadable manifest for {project_root}: {e}')
            return []

    def save(self, project_root: Path, blob_names: Sequence[str]) -> None:
        """Replace the manifest atomically.

        Raises:
            PersistenceError: If the manifest could not be written.
        """
        try:
            path = self.manifest_path(project_root)
            with filelock.FileLock(path.with_suffix('.lock')):
                temp_path = path.with_suffix('.tmp')
                temp_path.write_text(json.dumps(list(blob_names), indent=2) + '\n', encoding='utf-8')
                temp_path.replace(path)
        except OSError as e:
            raise PersistenceError(f'Failed to save manifest for {project_root}: {e}') from e
        logger.debug(f'[MANIFEST] Saved {len(blob_names)} blob names for {project_root}')
