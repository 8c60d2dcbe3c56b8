"""Codebase Context MCP Server.

Keeps a remote retrieval service in sync with a local project tree and
answers natural-language questions about the code.

Tools:
- search_context: Sync the project incrementally, then retrieve relevant code
"""

from __future__ import annotations

import contextlib
import logging
import sys
import typing
from collections.abc import AsyncIterator, Iterator
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

import mcp.server.fastmcp
import mcp.types

from codebase_context import paths
from codebase_context.clients import ContextEngineClient
from codebase_context.repositories import ManifestStore
from codebase_context.schemas.config import ContextConfig, load_config
from codebase_context.services import RetrievalService, SyncEngine

__all__ = [
    'ServerState',
    'create_server',
    'main',
]

logger = logging.getLogger(__name__)

SERVER_NAME = 'codebase-context'

_LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
_LOG_DATEFMT = '%Y-%m-%d %H:%M:%S'

SEARCH_CONTEXT_DESCRIPTION = """Search the codebase for code relevant to a natural-language query.

Before searching, the project is indexed incrementally: only files whose
content changed since the last call are uploaded, so repeated calls are cheap.

Use this when you need to find where something is implemented, how a feature
works, or which code relates to a concept, without knowing exact file names
or symbols.

Args:
    project_root_path: Absolute path to the project root. Use forward slashes.
        Defaults to the enclosing git repository of the server's working
        directory (or the working directory itself).
    query: What you are looking for, in natural language. Be specific, e.g.
        "Where is the retry policy for HTTP uploads configured?"

Returns:
    Formatted code snippets with file paths, or a message starting with
    'Error:' describing what went wrong."""


@dataclass
class ServerState:
    """Container for all server state - initialized once at startup."""

    config: ContextConfig
    client: ContextEngineClient
    manifest_store: ManifestStore
    sync_engine: SyncEngine
    retrieval: RetrievalService

    @classmethod
    def create(cls, config: ContextConfig) -> ServerState:
        client = ContextEngineClient.from_config(config)
        manifest_store = ManifestStore(config.data_dir)
        sync_engine = SyncEngine(config, client, manifest_store)
        return cls(
            config=config,
            client=client,
            manifest_store=manifest_store,
            sync_engine=sync_engine,
            retrieval=RetrievalService(config, client, sync_engine),
        )

    async def close(self) -> None:
        await self.client.close()


def create_server(config: ContextConfig) -> mcp.server.fastmcp.FastMCP:
    """Build the MCP server. Services are created when the server starts."""

    @contextlib.asynccontextmanager
    async def lifespan(mcp_server: mcp.server.fastmcp.FastMCP) -> AsyncIterator[None]:
        """Initialize services on startup, close the HTTP client on shutdown."""
        # stdout carries the MCP protocol, so logs go to stderr
        logging.basicConfig(
            level=logging.DEBUG,
            format='%(asctime)s.%(msecs)03d [%(levelname)s] %(name)s: %(message)s',
            datefmt='%H:%M:%S',
            stream=sys.stderr,
        )
        logging.getLogger('httpx').setLevel(logging.WARNING)
        logging.getLogger('httpcore').setLevel(logging.WARNING)

        state = ServerState.create(config)
        register_tools(mcp_server, state)

        print(f'✓ Codebase context server initialized ({config.base_url})', file=sys.stderr)

        try:
            yield
        finally:
            await state.close()
            print('✓ Codebase context server stopped', file=sys.stderr)

    return mcp.server.fastmcp.FastMCP(SERVER_NAME, lifespan=lifespan)


def register_tools(server: mcp.server.fastmcp.FastMCP, state: ServerState) -> None:
    """Register MCP tools with closure over server state."""

    @server.tool(
        description=SEARCH_CONTEXT_DESCRIPTION,
        annotations=mcp.types.ToolAnnotations(
            title='Search Codebase Context',
            destructiveHint=False,
            idempotentHint=True,
            readOnlyHint=False,
            openWorldHint=True,
        ),
    )
    async def search_context(
        query: str,
        project_root_path: str | None = None,
        ctx: mcp.server.fastmcp.Context[typing.Any, typing.Any, typing.Any] | None = None,
    ) -> str:
        project_root = resolve_project_root(project_root_path)

        with project_log(state.config, project_root):
            if ctx is not None:
                await ctx.info(f'Indexing and searching {project_root}')

            result = await state.retrieval.search_context(project_root, query)

            if ctx is not None:
                if result.startswith('Error:'):
                    await ctx.error(result)
                else:
                    await ctx.info(f'Retrieved {len(result):,} characters of context')
        return result


def resolve_project_root(project_root_path: str | None) -> Path:
    """Normalize the tool argument to a path, defaulting to the current project."""
    if not project_root_path:
        return paths.detect_project_root(Path.cwd())
    return Path(project_root_path.replace('\\', '/')).expanduser()


@contextlib.contextmanager
def project_log(config: ContextConfig, project_root: Path) -> Iterator[None]:
    """Append package log output to the project's log file while active.

    No-op unless logging to file is enabled, or if the log file cannot be
    opened.
    """
    if not config.enable_log or not project_root.is_dir():
        yield
        return

    try:
        handler = logging.FileHandler(paths.log_path(project_root, config.data_dir), encoding='utf-8')
    except OSError as e:
        logger.warning(f'Cannot open project log for {project_root}: {e}')
        yield
        return

    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT, datefmt=_LOG_DATEFMT))
    package_logger = logging.getLogger('codebase_context')
    package_logger.addHandler(handler)
    try:
        handler.stream.write(f'\n{"=" * 20} {datetime.now().isoformat(timespec="seconds")} {"=" * 20}\n')
        yield
    finally:
        handler.flush()
        handler.close()
        package_logger.removeHandler(handler)


def main() -> None:
    """Entry point: parse configuration, then serve over stdio."""
    try:
        config = load_config(sys.argv[1:])
    except ValueError as e:
        print(f'codebase-context: {e}', file=sys.stderr)
        sys.exit(2)

    create_server(config).run()


if __name__ == '__main__':
    main()
