"""Shared fixtures: config pointed at a temp state dir and a fake service transport."""

from __future__ import annotations

from collections.abc import AsyncIterator
from pathlib import Path

import pytest

from codebase_context.clients import ContextEngineClient
from codebase_context.repositories import ManifestStore
from codebase_context.schemas.config import ContextConfig
from codebase_context.services import RetrievalService, SyncEngine
from tests.codebase_context.fakes import FakeContextService


@pytest.fixture
def config(tmp_path: Path) -> ContextConfig:
    return ContextConfig(
        base_url='https://context.example.test',
        token='test-token',
        data_dir=tmp_path / 'state',
        upload_retry_delay_seconds=0,
        retrieval_retry_delay_seconds=0,
    )


@pytest.fixture
def project(tmp_path: Path) -> Path:
    root = tmp_path / 'project'
    root.mkdir()
    return root


@pytest.fixture
def service() -> FakeContextService:
    return FakeContextService()


@pytest.fixture
async def client(config: ContextConfig, service: FakeContextService) -> AsyncIterator[ContextEngineClient]:
    async with ContextEngineClient.from_config(config, transport=service.transport()) as client:
        yield client


@pytest.fixture
def manifest_store(config: ContextConfig) -> ManifestStore:
    return ManifestStore(config.data_dir)


@pytest.fixture
def engine(config: ContextConfig, client: ContextEngineClient, manifest_store: ManifestStore) -> SyncEngine:
    return SyncEngine(config, client, manifest_store)


@pytest.fixture
def retrieval(config: ContextConfig, client: ContextEngineClient, engine: SyncEngine) -> RetrievalService:
    return RetrievalService(config, client, engine)
