"""Shared test helpers and stub classes.

Import from here instead of duplicating these helpers in individual test files.
"""

from __future__ import annotations

from typing import Any, Sequence

from devvault.services.repository import Item, ItemType, Tag
from devvault.workspace.tabs import Tab, TabRemoval


class FakeClock:
    """Deterministic replacement for ``time.time`` that advances 1 ms per call."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        self.now += 0.001
        return self.now


def make_item(
    item_id: int,
    title: str,
    *,
    item_type: str = "snippet",
    content: str = "",
    description: str | None = None,
    tags: Sequence[str] = (),
) -> Item:
    return Item(
        id=item_id,
        type=ItemType.coerce(item_type),
        title=title,
        content=content,
        description=description,
        tags=tuple(Tag(id=index + 1, name=name) for index, name in enumerate(tags)),
    )


class ListenerRecorder:
    """Collects registry notifications for assertions."""

    def __init__(self) -> None:
        self.changes = 0
        self.active: list[Tab | None] = []
        self.removed: list[TabRemoval] = []

    def attach(self, registry: Any) -> "ListenerRecorder":
        registry.add_change_listener(self._on_change)
        registry.add_active_listener(self.active.append)
        registry.add_removed_listener(self.removed.append)
        return self

    def _on_change(self) -> None:
        self.changes += 1
