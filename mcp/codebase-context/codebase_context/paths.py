"""Centralized file paths for codebase context.

Per-project state lives under the user's home directory, never inside the
project itself, so it stays out of the project's version control.
"""

from __future__ import annotations

import hashlib
import re
from pathlib import Path

import git

__all__ = [
    'DATA_DIR',
    'DATA_DIR_NAME',
    'LOG_FILE_NAME',
    'MANIFEST_FILE_NAME',
    'detect_project_root',
    'log_path',
    'manifest_path',
    'project_data_dir',
]

DATA_DIR_NAME = '.codebase-context'
DATA_DIR = Path.home() / DATA_DIR_NAME

MANIFEST_FILE_NAME = 'manifest.json'
LOG_FILE_NAME = 'codebase-context.log'

# Characters that are unsafe in a directory name on any supported platform
_UNSAFE_SEGMENT_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')
_WINDOWS_DRIVE = re.compile(r'^[a-zA-Z]:[\\/]*$')


def project_data_dir(project_root: Path, base_dir: Path = DATA_DIR) -> Path:
    """Get the state directory for a project, creating it if needed.

    Layout: <base_dir>/<flattened-root>-<hash8>. The flattened root keeps the
    directory recognizable, the hash keeps it unique.
    """
    resolved = project_root.expanduser().resolve()
    digest = hashlib.sha256(str(resolved).encode('utf-8')).hexdigest()[:8]
    path = base_dir / f'{_flatten(resolved)}-{digest}'
    path.mkdir(parents=True, exist_ok=True)
    return path


def manifest_path(project_root: Path, base_dir: Path = DATA_DIR) -> Path:
    """Get the manifest file path for a project."""
    return project_data_dir(project_root, base_dir) / MANIFEST_FILE_NAME


def log_path(project_root: Path, base_dir: Path = DATA_DIR) -> Path:
    """Get the log file path for a project."""
    return project_data_dir(project_root, base_dir) / LOG_FILE_NAME


def detect_project_root(start: Path) -> Path:
    """Find the enclosing git working tree, falling back to start itself."""
    try:
        repo = git.Repo(start, search_parent_directories=True)
    except (git.InvalidGitRepositoryError, git.NoSuchPathError):
        return start
    working_dir = repo.working_tree_dir
    return Path(working_dir) if working_dir else start


def _sanitize_segment(name: str) -> str:
    sanitized = _UNSAFE_SEGMENT_CHARS.sub('_', name).strip()
    return sanitized or 'unknown'


def _flatten(resolved: Path) -> str:
    """Join the path segments of an absolute path with dashes."""
    parts = [part for part in re.split(r'[\\/]+', str(resolved)) if part]
    drive = ''
    if _WINDOWS_DRIVE.match(resolved.anchor) and parts and ':' in parts[0]:
        drive = _sanitize_segment(parts.pop(0).replace(':', ''))
    segments = [_sanitize_segment(part) for part in parts]
    if drive:
        segments.insert(0, drive)
    return '-'.join(s for s in segments if s) or 'unknown'
