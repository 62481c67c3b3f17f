"""Item repository contract consumed by the workspace core.

The workspace never talks to storage directly; it goes through an
:class:`ItemRepository`. Two implementations ship with the package: the
:class:`InMemoryItemRepository` used for offline sessions and tests, and
:class:`~devvault.services.http_repository.HttpItemRepository` which speaks to
the storage service over HTTP.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Iterable, Protocol, Sequence, runtime_checkable

from .errors import NotFoundError, ValidationError

__all__ = [
    "ItemType",
    "Tag",
    "Item",
    "CreateItemRequest",
    "UpdateItemRequest",
    "ItemRepository",
    "InMemoryItemRepository",
    "require_title",
]

LOGGER = logging.getLogger(__name__)


class ItemType(str, Enum):
    """Kinds of content stored in the knowledge base."""

    SNIPPET = "snippet"
    CONFIG = "config"
    NOTE = "note"
    LINK = "link"
    DOCUMENTATION = "documentation"

    @classmethod
    def coerce(cls, value: "ItemType | str") -> "ItemType":
        if isinstance(value, cls):
            return value
        return cls(str(value).strip().lower())


@dataclass(frozen=True, slots=True)
class Tag:
    id: int
    name: str


@dataclass(frozen=True, slots=True)
class Item:
    """A persisted content item as returned by the repository."""

    id: int
    type: ItemType
    title: str
    content: str
    description: str | None = None
    created_at: int = 0
    updated_at: int = 0
    tags: tuple[Tag, ...] = ()
    metadata: dict[str, Any] | None = None

    def tag_names(self) -> list[str]:
        return [tag.name for tag in self.tags]


@dataclass(frozen=True, slots=True)
class CreateItemRequest:
    type: ItemType
    title: str
    content: str = ""
    description: str | None = None
    tag_names: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class UpdateItemRequest:
    """Partial update; ``None`` fields are left unchanged."""

    id: int
    type: ItemType | None = None
    title: str | None = None
    description: str | None = None
    content: str | None = None
    tag_names: tuple[str, ...] | None = None

    def changed_fields(self) -> list[str]:
        names = ("type", "title", "description", "content", "tag_names")
        return [name for name in names if getattr(self, name) is not None]


@runtime_checkable
class ItemRepository(Protocol):
    """Asynchronous request/response boundary to item storage."""

    async def create_item(self, request: CreateItemRequest) -> Item:
        """Persist a new item; raises :class:`ValidationError` on an empty title."""
        ...

    async def update_item(self, request: UpdateItemRequest) -> Item:
        ...

    async def get_item(self, item_id: int) -> Item:
        """Return the item or raise :class:`NotFoundError`."""
        ...

    async def delete_item(self, item_id: int) -> None:
        ...


def require_title(title: str | None) -> str:
    """Return the trimmed title or raise :class:`ValidationError`."""

    trimmed = (title or "").strip()
    if not trimmed:
        raise ValidationError(message="Title cannot be empty.", field_name="title")
    return trimmed


class InMemoryItemRepository:
    """Process-local repository backed by a dict.

    Used for offline sessions (``repository_backend = "memory"``) and as the
    default collaborator in tests. ``latency`` inserts an ``asyncio.sleep``
    before every call so ordering issues surface the same way they do against
    a real backend.
    """

    def __init__(self, items: Iterable[Item] = (), *, latency: float = 0.0) -> None:
        self._items: dict[int, Item] = {}
        self._tags: dict[str, Tag] = {}
        self._next_item_id = 1
        self._next_tag_id = 1
        self._latency = max(0.0, latency)
        self.calls: list[tuple[str, Any]] = []
        for item in items:
            self._items[item.id] = item
            self._next_item_id = max(self._next_item_id, item.id + 1)
            for tag in item.tags:
                self._tags.setdefault(tag.name, tag)
                self._next_tag_id = max(self._next_tag_id, tag.id + 1)

    @property
    def items(self) -> dict[int, Item]:
        return dict(self._items)

    async def create_item(self, request: CreateItemRequest) -> Item:
        self.calls.append(("create", request))
        title = require_title(request.title)
        await self._simulate_latency()
        now = int(time.time())
        item = Item(
            id=self._next_item_id,
            type=ItemType.coerce(request.type),
            title=title,
            content=request.content,
            description=request.description,
            created_at=now,
            updated_at=now,
            tags=self._resolve_tags(request.tag_names),
        )
        self._next_item_id += 1
        self._items[item.id] = item
        LOGGER.debug("Created item %s (%s)", item.id, item.type.value)
        return item

    async def update_item(self, request: UpdateItemRequest) -> Item:
        self.calls.append(("update", request))
        if request.title is not None:
            require_title(request.title)
        await self._simulate_latency()
        current = self._items.get(request.id)
        if current is None:
            raise NotFoundError(message=f"Item {request.id} does not exist", item_id=request.id)
        changes: dict[str, Any] = {"updated_at": int(time.time())}
        if request.type is not None:
            changes["type"] = ItemType.coerce(request.type)
        if request.title is not None:
            changes["title"] = request.title.strip()
        if request.description is not None:
            changes["description"] = request.description
        if request.content is not None:
            changes["content"] = request.content
        if request.tag_names is not None:
            changes["tags"] = self._resolve_tags(request.tag_names)
        updated = replace(current, **changes)
        self._items[updated.id] = updated
        return updated

    async def get_item(self, item_id: int) -> Item:
        self.calls.append(("get", item_id))
        await self._simulate_latency()
        item = self._items.get(item_id)
        if item is None:
            raise NotFoundError(message=f"Item {item_id} does not exist", item_id=item_id)
        return item

    async def delete_item(self, item_id: int) -> None:
        self.calls.append(("delete", item_id))
        await self._simulate_latency()
        if self._items.pop(item_id, None) is None:
            raise NotFoundError(message=f"Item {item_id} does not exist", item_id=item_id)

    def count_calls(self, kind: str) -> int:
        return sum(1 for name, _ in self.calls if name == kind)

    async def _simulate_latency(self) -> None:
        if self._latency:
            await asyncio.sleep(self._latency)

    def _resolve_tags(self, names: Sequence[str]) -> tuple[Tag, ...]:
        resolved: list[Tag] = []
        for raw in names:
            name = raw.strip()
            if not name or any(tag.name == name for tag in resolved):
                continue
            tag = self._tags.get(name)
            if tag is None:
                tag = Tag(id=self._next_tag_id, name=name)
                self._next_tag_id += 1
                self._tags[name] = tag
            resolved.append(tag)
        return tuple(resolved)
