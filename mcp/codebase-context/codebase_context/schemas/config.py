"""Server configuration schema.

Built once at startup from command line flags (with environment fallbacks)
and handed to every component that needs it. Nothing reads configuration
from module globals.
"""

from __future__ import annotations

import argparse
import logging
import os
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Annotated

import pydantic
from pydantic import Field

from codebase_context.paths import DATA_DIR, DATA_DIR_NAME
from codebase_context.schemas.base import StrictModel

__all__ = [
    'DEFAULT_EXCLUDE_PATTERNS',
    'DEFAULT_TEXT_EXTENSIONS',
    'ContextConfig',
    'load_config',
    'normalize_base_url',
]

logger = logging.getLogger(__name__)

BASE_URL_ENV = 'CODEBASE_CONTEXT_BASE_URL'
TOKEN_ENV = 'CODEBASE_CONTEXT_TOKEN'

DEFAULT_TEXT_EXTENSIONS: tuple[str, ...] = (
    # Programming languages
    '.py', '.js', '.ts', '.jsx', '.tsx',
    '.java', '.go', '.rs', '.cpp', '.c',
    '.h', '.hpp', '.cs', '.rb', '.php',
    '.swift', '.kt', '.scala', '.clj',
    # Config and data
    '.md', '.txt', '.json', '.yaml', '.yml',
    '.toml', '.xml', '.ini', '.conf',
    # Web
    '.html', '.css', '.scss', '.sass', '.less',
    # Scripts
    '.sql', '.sh', '.bash', '.ps1', '.bat',
    '.vue', '.svelte',
)  # fmt: skip

DEFAULT_EXCLUDE_PATTERNS: tuple[str, ...] = (
    # Virtual environments
    '.venv', 'venv', '.env', 'env', 'node_modules',
    # Version control
    '.git', '.svn', '.hg',
    # Python caches
    '__pycache__', '.pytest_cache', '.mypy_cache',
    '.tox', '.eggs', '*.egg-info',
    # Build output
    'dist', 'build', 'target', 'out',
    # IDE settings
    '.idea', '.vscode', '.vs',
    # OS metadata
    '.DS_Store', 'Thumbs.db',
    # Compiled artifacts
    '*.pyc', '*.pyo', '*.pyd', '*.so', '*.dll',
    # Lockfiles and binary media
    '*.lock', 'package-lock.json', '*.min.js',
    '*.png', '*.jpg', '*.jpeg', '*.gif', '*.ico', '*.pdf', '*.zip',
    # Our own state directory
    DATA_DIR_NAME,
)  # fmt: skip

PositiveInt = Annotated[int, Field(gt=0)]
PositiveSeconds = Annotated[float, Field(gt=0, strict=False)]
DelaySeconds = Annotated[float, Field(ge=0, strict=False)]


class ContextConfig(StrictModel):
    """Connection, batching and discovery settings.

    Upload batch size and concurrency are caps on the adaptive upload
    strategy; the upload timeout is its floor.
    """

    base_url: str
    token: Annotated[str, Field(min_length=1)]
    batch_size: PositiveInt = 50
    max_lines_per_blob: PositiveInt = 800
    upload_concurrency: PositiveInt = 2
    upload_timeout_seconds: PositiveSeconds = 30.0
    retrieval_timeout_seconds: PositiveSeconds = 60.0
    max_retry_attempts: PositiveInt = 3
    upload_retry_delay_seconds: DelaySeconds = 1.0
    retrieval_retry_delay_seconds: DelaySeconds = 2.0
    text_extensions: tuple[str, ...] = DEFAULT_TEXT_EXTENSIONS
    exclude_patterns: tuple[str, ...] = DEFAULT_EXCLUDE_PATTERNS
    enable_log: bool = False
    data_dir: Path = DATA_DIR

    @pydantic.field_validator('base_url')
    @classmethod
    def _normalize_base_url(cls, value: str) -> str:
        return normalize_base_url(value)


def normalize_base_url(url: str) -> str:
    """Ensure a scheme is present and strip the trailing slash.

    Raises:
        ValueError: If the URL is empty.
    """
    url = url.strip()
    if not url:
        raise ValueError('base_url must not be empty')
    if not url.startswith(('http://', 'https://')):
        url = f'https://{url}'
    return url.rstrip('/')


def load_config(argv: Sequence[str], environ: Mapping[str, str] | None = None) -> ContextConfig:
    """Build config from command line flags, falling back to environment variables.

    Args:
        argv: Arguments without the program name.
        environ: Environment mapping. Defaults to os.environ.

    Raises:
        ValueError: If base URL or token is missing, or a value is invalid.
    """
    env = os.environ if environ is None else environ
    args = _build_parser().parse_args(list(argv))

    base_url = args.base_url or env.get(BASE_URL_ENV)
    if not base_url:
        raise ValueError(f'Missing required argument: --base-url (or {BASE_URL_ENV})')
    token = args.token or env.get(TOKEN_ENV)
    if not token:
        raise ValueError(f'Missing required argument: --token (or {TOKEN_ENV})')

    # Only pass explicit overrides so model defaults stay in one place
    overrides: dict[str, object] = {}
    if args.batch_size is not None:
        overrides['batch_size'] = args.batch_size
    if args.max_lines_per_blob is not None:
        overrides['max_lines_per_blob'] = args.max_lines_per_blob
    if args.upload_concurrency is not None:
        overrides['upload_concurrency'] = args.upload_concurrency
    if args.upload_timeout_ms is not None:
        overrides['upload_timeout_seconds'] = args.upload_timeout_ms / 1000
    if args.retrieval_timeout_ms is not None:
        overrides['retrieval_timeout_seconds'] = args.retrieval_timeout_ms / 1000

    try:
        config = ContextConfig.model_validate(
            {'base_url': base_url, 'token': token, 'enable_log': args.enable_log, **overrides}
        )
    except pydantic.ValidationError as e:
        raise ValueError(f'Invalid configuration: {e}') from e

    logger.debug(
        f'Loaded config: base_url={config.base_url}, batch_size={config.batch_size}, '
        f'max_lines_per_blob={config.max_lines_per_blob}, upload_concurrency={config.upload_concurrency}'
    )
    return config


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='codebase-context', description='Codebase context MCP server')
    parser.add_argument('--base-url', help='Retrieval service base URL')
    parser.add_argument('--token', help='Bearer token for the retrieval service')
    parser.add_argument('--enable-log', action='store_true', help='Append logs to the per-project log file')
    parser.add_argument('--batch-size', type=int, help='Maximum blobs per upload request')
    parser.add_argument('--max-lines-per-blob', type=int, help='Split files longer than this many lines')
    parser.add_argument('--upload-concurrency', type=int, help='Maximum upload requests in flight')
    parser.add_argument('--upload-timeout-ms', type=int, help='Minimum upload request timeout')
    parser.add_argument('--retrieval-timeout-ms', type=int, help='Retrieval request timeout')
    return parser
