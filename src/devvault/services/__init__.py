"""Service layer helpers (repository adapters, settings, errors)."""

from .errors import NotFoundError, RepositoryError, ValidationError, VaultError
from .repository import (
    CreateItemRequest,
    InMemoryItemRepository,
    Item,
    ItemRepository,
    ItemType,
    Tag,
    UpdateItemRequest,
)

__all__ = [
    "CreateItemRequest",
    "InMemoryItemRepository",
    "Item",
    "ItemRepository",
    "ItemType",
    "NotFoundError",
    "RepositoryError",
    "Tag",
    "UpdateItemRequest",
    "ValidationError",
    "VaultError",
]
