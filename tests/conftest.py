"""Shared pytest fixtures."""

from __future__ import annotations

import os

import pytest

from devvault.services.repository import InMemoryItemRepository
from devvault.workspace.tabs import TabRegistry

from tests.helpers import FakeClock, make_item


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    for name in list(os.environ):
        if name.startswith("DEVVAULT_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("DEVVAULT_LOG_DIR", str(tmp_path / "logs"))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def registry(clock: FakeClock) -> TabRegistry:
    return TabRegistry(clock=clock)


@pytest.fixture
def repository() -> InMemoryItemRepository:
    return InMemoryItemRepository(
        [
            make_item(1, "Deploy script", content="kubectl apply -f .", tags=("k8s",)),
            make_item(2, "Nginx config", item_type="config", content="server {}"),
        ]
    )
