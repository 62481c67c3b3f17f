"""Local editable mirror of one open item plus its last-saved snapshot."""

from __future__ import annotations

from dataclasses import dataclass, fields as dataclass_fields, replace
from typing import Any

from ..services.repository import CreateItemRequest, Item, ItemType, UpdateItemRequest

__all__ = ["ItemFields", "DraftBuffer", "parse_tags"]


def parse_tags(value: str) -> tuple[str, ...]:
    """Split the comma-separated tag field into trimmed, non-empty names."""

    return tuple(part.strip() for part in value.split(",") if part.strip())


@dataclass(frozen=True, slots=True)
class ItemFields:
    """Snapshot of the editable fields of an item."""

    title: str = ""
    description: str = ""
    content: str = ""
    tags: str = ""
    type: ItemType = ItemType.SNIPPET

    @classmethod
    def from_item(cls, item: Item) -> "ItemFields":
        return cls(
            title=item.title,
            description=item.description or "",
            content=item.content,
            tags=", ".join(item.tag_names()),
            type=item.type,
        )

    @classmethod
    def empty(cls, item_type: ItemType | str) -> "ItemFields":
        return cls(type=ItemType.coerce(item_type))

    def normalized(self) -> "ItemFields":
        """Return the fields as they would be written (title trimmed)."""

        return replace(self, title=self.title.strip())

    def tag_names(self) -> tuple[str, ...]:
        return parse_tags(self.tags)


_FIELD_NAMES = frozenset(f.name for f in dataclass_fields(ItemFields))


class DraftBuffer:
    """Editable fields for one tab compared against the last committed snapshot."""

    def __init__(self, initial: ItemFields | None = None) -> None:
        start = initial or ItemFields()
        self._fields = start
        self._last_saved = start.normalized()

    @property
    def fields(self) -> ItemFields:
        return self._fields

    @property
    def last_saved(self) -> ItemFields:
        return self._last_saved

    def reset(self, fields: ItemFields) -> None:
        """Rebind to new content: buffer and snapshot both become ``fields``."""

        self._fields = fields
        self._last_saved = fields.normalized()

    def update(self, **changes: Any) -> bool:
        """Apply field edits; returns ``True`` when anything actually changed."""

        unknown = set(changes) - _FIELD_NAMES
        if unknown:
            raise TypeError(f"Unknown item fields: {sorted(unknown)}")
        if "type" in changes:
            changes["type"] = ItemType.coerce(changes["type"])
        updated = replace(self._fields, **changes)
        if updated == self._fields:
            return False
        self._fields = updated
        return True

    def is_dirty(self) -> bool:
        return self._fields.normalized() != self._last_saved

    def mark_saved(self, fields: ItemFields | None = None) -> None:
        """Record ``fields`` (default: the current buffer) as persisted."""

        self._last_saved = (fields or self._fields).normalized()

    def to_create_request(self, fields: ItemFields | None = None) -> CreateItemRequest:
        current = (fields or self._fields).normalized()
        return CreateItemRequest(
            type=current.type,
            title=current.title,
            content=current.content,
            description=current.description or None,
            tag_names=current.tag_names(),
        )

    def to_update_request(self, item_id: int, fields: ItemFields | None = None) -> UpdateItemRequest:
        current = (fields or self._fields).normalized()
        type_changed = current.type != self._last_saved.type
        return UpdateItemRequest(
            id=item_id,
            type=current.type if type_changed else None,
            title=current.title,
            description=current.description,
            content=current.content,
            tag_names=current.tag_names(),
        )
