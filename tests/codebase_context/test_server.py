"""Tests for MCP server wiring: tool registration, root resolution, project log."""

from __future__ import annotations

import logging
from pathlib import Path

import mcp.server.fastmcp
import pytest

from codebase_context import paths
from codebase_context.schemas.config import ContextConfig
from codebase_context.server import (
    SERVER_NAME,
    ServerState,
    create_server,
    project_log,
    register_tools,
    resolve_project_root,
)


class TestResolveProjectRoot:
    def test_backslashes_normalized(self) -> None:
        assert resolve_project_root('C:\\work\\app') == Path('C:/work/app')

    def test_forward_slashes_unchanged(self, tmp_path: Path) -> None:
        assert resolve_project_root(str(tmp_path)) == tmp_path

    @pytest.mark.parametrize('value', [None, ''])
    def test_defaults_to_detected_root(
        self, value: str | None, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        monkeypatch.chdir(tmp_path)
        assert resolve_project_root(value) == paths.detect_project_root(Path.cwd())


class TestProjectLog:
    def test_disabled_writes_nothing(self, config: ContextConfig, project: Path) -> None:
        with project_log(config, project):
            logging.getLogger('codebase_context.services').info('not captured')
        assert not paths.log_path(project, config.data_dir).exists()

    def test_enabled_appends_package_logs(self, config: ContextConfig, project: Path) -> None:
        config = config.model_copy(update={'enable_log': True})
        package_logger = logging.getLogger('codebase_context')
        previous_level = package_logger.level
        package_logger.setLevel(logging.INFO)
        try:
            with project_log(config, project):
                logging.getLogger('codebase_context.services.sync').info('first pass')
            with project_log(config, project):
                logging.getLogger('codebase_context.services.sync').info('second pass')
            logging.getLogger('codebase_context.services.sync').info('after close')
        finally:
            package_logger.setLevel(previous_level)

        content = paths.log_path(project, config.data_dir).read_text(encoding='utf-8')
        assert 'first pass' in content
        assert 'second pass' in content
        assert 'after close' not in content
        assert content.count('=' * 20) == 4

    def test_handler_removed(self, config: ContextConfig, project: Path) -> None:
        config = config.model_copy(update={'enable_log': True})
        package_logger = logging.getLogger('codebase_context')
        before = list(package_logger.handlers)
        with project_log(config, project):
            assert len(package_logger.handlers) == len(before) + 1
        assert package_logger.handlers == before


class TestRegisterTools:
    async def test_search_context_tool_registered(self, config: ContextConfig) -> None:
        server = mcp.server.fastmcp.FastMCP(SERVER_NAME)
        state = ServerState.create(config)
        try:
            register_tools(server, state)
            tools = await server.list_tools()
        finally:
            await state.close()

        assert [tool.name for tool in tools] == ['search_context']
        schema = tools[0].inputSchema
        assert schema['required'] == ['query']
        assert set(schema['properties']) == {'query', 'project_root_path'}

    def test_create_server_named(self, config: ContextConfig) -> None:
        assert create_server(config).name == SERVER_NAME
