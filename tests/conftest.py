import copy
from pathlib import Path
from typing import Any, Dict

import pytest
from asgi_lifespan import LifespanManager
from httpx import ASGITransport, AsyncClient

from nokode.config import DEFAULT_CONFIG
from nokode.server import build_tool_registry, create_app
from nokode.tools.database import Datastore
from nokode.tools.memory import MemoryStore
from tests.fakes import FakeProvider


def make_config(tmp_path: Path, **agent_overrides: Any) -> Dict[str, Any]:
    cfg = copy.deepcopy(DEFAULT_CONFIG)
    cfg["paths"] = {
        "prompt": str(tmp_path / "prompt.md"),
        "memory": str(tmp_path / "memory.md"),
        "database": str(tmp_path / "database.db"),
    }
    cfg["agent"].update(agent_overrides)
    return cfg


@pytest.fixture
def datastore(tmp_path: Path) -> Datastore:
    return Datastore(str(tmp_path / "database.db"))


@pytest.fixture
def memory_store(tmp_path: Path) -> MemoryStore:
    return MemoryStore(str(tmp_path / "memory.md"))


@pytest.fixture
def tools(memory_store: MemoryStore, datastore: Datastore):
    return build_tool_registry(memory_store, datastore)


@pytest.fixture
def app_factory(tmp_path: Path):
    def _factory(provider: FakeProvider | None = None, **agent_overrides: Any):
        cfg = make_config(tmp_path, **agent_overrides)
        fake = provider or FakeProvider()
        app = create_app(cfg, provider=fake)
        return app, fake

    return _factory


@pytest.fixture
def client_for(app_factory):
    """Async context manager yielding an httpx client for a given provider."""

    class _Client:
        def __init__(self, provider: FakeProvider | None = None, **agent_overrides: Any) -> None:
            self.app, self.provider = app_factory(provider, **agent_overrides)

        async def __aenter__(self) -> AsyncClient:
            self._lifespan = LifespanManager(self.app)
            await self._lifespan.__aenter__()
            self._client = AsyncClient(transport=ASGITransport(app=self.app), base_url="http://test")
            http_client = await self._client.__aenter__()
            http_client.app = self.app  # type: ignore[attr-defined]
            http_client.fake_provider = self.provider  # type: ignore[attr-defined]
            return http_client

        async def __aexit__(self, *exc_info: Any) -> None:
            await self._client.__aexit__(*exc_info)
            await self._lifespan.__aexit__(*exc_info)

    return _Client
