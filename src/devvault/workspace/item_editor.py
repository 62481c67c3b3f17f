"""Editor controller binding one Item or Draft tab to a draft buffer.

The controller owns the buffer for its tab, decides when the buffer is
committed (debounced autosave or explicit save) and materializes draft tabs
into persisted items exactly once, however fast the user keeps typing.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum, auto
from typing import Any

from ..services.errors import NotFoundError, ValidationError, VaultError
from ..services.repository import Item, ItemRepository, ItemType
from .autosave import DEFAULT_AUTOSAVE_DELAY, AutosaveScheduler
from .draft_buffer import DraftBuffer, ItemFields
from .tabs import TabKind, TabRegistry

__all__ = ["EditorState", "ItemEditor"]

LOGGER = logging.getLogger(__name__)


class EditorState(Enum):
    CLEAN = auto()
    EDITING = auto()
    COMMITTING = auto()
    MANUAL_DIRTY = auto()


class ItemEditor:
    """Controller for the detail view of a single Item or Draft tab."""

    def __init__(
        self,
        *,
        registry: TabRegistry,
        repository: ItemRepository,
        tab_id: str,
        autosave_enabled: bool = True,
        autosave_delay: float = DEFAULT_AUTOSAVE_DELAY,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        tab = registry.get_tab(tab_id)
        if tab.kind not in (TabKind.ITEM, TabKind.DRAFT):
            raise ValueError(f"Tab {tab_id} does not host an item editor (kind={tab.kind.value})")
        self._registry = registry
        self._repository = repository
        self._labels = registry.labels
        self._loop = loop
        self._tab_id = tab_id
        self._autosave_enabled = autosave_enabled
        self._autosave = AutosaveScheduler(self._commit_update, delay=autosave_delay, loop=loop)
        self._buffer = DraftBuffer()
        self._item: Item | None = None
        self._item_id: int | None = tab.item_id if tab.kind is TabKind.ITEM else None
        self._bound = False
        self._title_error = ""
        self._title_before_edit = ""
        self._is_creating = False
        self._has_pending_changes = False
        self._creation_task: asyncio.Task[bool] | None = None
        self._committing = False
        self._load_token = 0
        self._disposed = False
        self.not_found = False
        self.last_error: VaultError | None = None
        if tab.kind is TabKind.DRAFT:
            self.bind_draft(tab.item_type or ItemType.SNIPPET)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------
    @property
    def tab_id(self) -> str:
        return self._tab_id

    @property
    def item_id(self) -> int | None:
        return self._item_id

    @property
    def item(self) -> Item | None:
        return self._item

    @property
    def is_draft(self) -> bool:
        return self._item_id is None

    @property
    def is_bound(self) -> bool:
        return self._bound

    @property
    def fields(self) -> ItemFields:
        return self._buffer.fields

    @property
    def buffer(self) -> DraftBuffer:
        return self._buffer

    @property
    def title_error(self) -> str:
        return self._title_error

    @property
    def is_creating(self) -> bool:
        return self._is_creating

    @property
    def has_pending_changes(self) -> bool:
        return self._has_pending_changes

    @property
    def autosave_enabled(self) -> bool:
        return self._autosave_enabled

    @property
    def autosave_pending(self) -> bool:
        return self._autosave.pending

    @property
    def disposed(self) -> bool:
        return self._disposed

    @property
    def read_only(self) -> bool:
        """Documentation items are shown but never written back."""

        return self._item is not None and self._item.type is ItemType.DOCUMENTATION

    @property
    def state(self) -> EditorState:
        if self._committing or self._is_creating:
            return EditorState.COMMITTING
        if self._buffer.is_dirty():
            return EditorState.EDITING if self._autosave_enabled else EditorState.MANUAL_DIRTY
        return EditorState.CLEAN

    # ------------------------------------------------------------------
    # Binding and loading
    # ------------------------------------------------------------------
    def bind_item(self, item: Item) -> None:
        """Reset the buffer to ``item``; any pending autosave for old content is dropped."""

        self._autosave.cancel()
        self._item = item
        self._item_id = item.id
        self._buffer.reset(ItemFields.from_item(item))
        self._title_error = ""
        self._title_before_edit = item.title
        self.not_found = False
        self.last_error = None
        self._bound = True
        self._sync_dirty_flag()

    def bind_draft(self, item_type: ItemType | str) -> None:
        self._autosave.cancel()
        self._item = None
        self._item_id = None
        self._buffer.reset(ItemFields.empty(item_type))
        self._title_error = ""
        self._title_before_edit = ""
        self._bound = True
        self._sync_dirty_flag()

    async def load(self) -> Item | None:
        """Fetch the bound item; responses for a superseded load are discarded."""

        if self._item_id is None or self._disposed:
            return None
        self._load_token += 1
        token = self._load_token
        item_id = self._item_id
        try:
            item = await self._repository.get_item(item_id)
        except NotFoundError:
            if self._is_stale(token):
                return None
            self.not_found = True
            LOGGER.info("Item %s no longer exists", item_id)
            return None
        except VaultError as exc:
            if self._is_stale(token):
                return None
            self.last_error = exc
            LOGGER.warning("Failed to load item %s: %s", item_id, exc)
            return None
        if self._is_stale(token) or item.id != self._item_id:
            LOGGER.debug("Discarding stale load for item %s", item_id)
            return None
        self.bind_item(item)
        return item

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------
    def interact(self) -> None:
        """Any interaction with the editor pins its tab."""

        self._registry.pin_tab(self._tab_id)

    def set_title(self, value: str) -> bool:
        return self.update(title=value)

    def set_description(self, value: str) -> bool:
        return self.update(description=value)

    def set_content(self, value: str) -> bool:
        return self.update(content=value)

    def set_tags(self, value: str) -> bool:
        return self.update(tags=value)

    def set_type(self, value: ItemType | str) -> bool:
        return self.update(type=value)

    def update(self, **changes: Any) -> bool:
        if self._disposed:
            LOGGER.debug("Edit on disposed editor for tab %s ignored", self._tab_id)
            return False
        if not self._bound:
            LOGGER.debug("Edit before item %s was loaded ignored", self._item_id)
            return False
        self.interact()
        if self.read_only:
            LOGGER.debug("Edit on read-only item %s ignored", self._item_id)
            return False
        if not self._buffer.update(**changes):
            return False
        self._on_buffer_changed(title_changed="title" in changes)
        return True

    def focus_title(self) -> None:
        self._title_before_edit = self._buffer.fields.title

    def blur_title(self) -> None:
        """Leaving an emptied title restores the value it had on focus."""

        if self.is_draft or not self._bound or self._buffer.fields.title.strip():
            return
        restored = self._title_before_edit or (self._item.title if self._item else "")
        self._buffer.update(title=restored)
        self._title_error = ""
        self._sync_dirty_flag()
        if self._autosave_enabled:
            self._reschedule_autosave()

    # ------------------------------------------------------------------
    # Saving
    # ------------------------------------------------------------------
    async def save(self) -> bool:
        """Commit the buffer now; returns ``True`` when nothing is left unsaved."""

        if self._disposed or not self._bound:
            return False
        if self.read_only:
            return False
        if not self._buffer.fields.title.strip():
            self._title_error = self._labels.title_required()
            self.last_error = ValidationError(message=self._title_error, field_name="title")
            return False
        if self.is_draft:
            if self._is_creating:
                self._has_pending_changes = True
                return False
            self._is_creating = True
            self._has_pending_changes = False
            return await self._materialize_draft()
        self._title_error = ""
        saved = await self._autosave.commit_now()
        return saved or not self._buffer.is_dirty()

    def set_autosave_enabled(self, enabled: bool) -> None:
        self._autosave_enabled = enabled
        if not enabled:
            self._autosave.cancel()
        self._sync_dirty_flag()
        if enabled and not self.is_draft:
            self._reschedule_autosave()

    async def wait_idle(self) -> None:
        if self._creation_task is not None and not self._creation_task.done():
            await asyncio.wait([self._creation_task])
        await self._autosave.wait_idle()

    def dispose(self) -> None:
        """Stop scheduling writes; a request already sent is left to finish."""

        self._disposed = True
        self._load_token += 1
        self._autosave.cancel()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _is_stale(self, token: int) -> bool:
        return self._disposed or token != self._load_token

    def _on_buffer_changed(self, *, title_changed: bool) -> None:
        trimmed = self._buffer.fields.title.strip()
        if self.is_draft:
            placeholder = self._labels.draft_title(self._buffer.fields.type)
            self._registry.update_tab_title_by_id(self._tab_id, trimmed or placeholder)
            if trimmed:
                self._title_error = ""
            if self._is_creating:
                self._has_pending_changes = True
            elif self._autosave_enabled and trimmed:
                self._start_creation()
            self._sync_dirty_flag()
            return
        if title_changed:
            self._title_error = "" if trimmed else self._labels.title_required()
        self._sync_dirty_flag()
        if self._autosave_enabled:
            self._reschedule_autosave()

    def _sync_dirty_flag(self) -> None:
        dirty = not self._autosave_enabled and self._buffer.is_dirty()
        self._registry.set_tab_dirty(self._tab_id, dirty)

    def _can_commit(self) -> bool:
        return (
            not self._disposed
            and self._item_id is not None
            and not self.read_only
            and not self._title_error
            and bool(self._buffer.fields.title.strip())
            and self._buffer.is_dirty()
        )

    def _reschedule_autosave(self) -> None:
        self._autosave.cancel()
        if self._can_commit():
            self._autosave.schedule()

    async def _commit_update(self) -> bool:
        if not self._can_commit():
            return False
        item_id = self._item_id
        assert item_id is not None
        # Snapshot what is sent, not what the buffer holds when the reply lands.
        written = self._buffer.fields.normalized()
        request = self._buffer.to_update_request(item_id, written)
        self._committing = True
        try:
            item = await self._repository.update_item(request)
        except VaultError as exc:
            self._record_failure("update", exc)
            return False
        finally:
            self._committing = False
        self._item = item
        self._buffer.mark_saved(written)
        self.last_error = None
        self._registry.update_tab_title(item_id, written.title)
        self._sync_dirty_flag()
        return True

    def _start_creation(self) -> None:
        self._is_creating = True
        self._has_pending_changes = False
        loop = self._loop or asyncio.get_running_loop()
        written = self._buffer.fields.normalized()
        self._creation_task = loop.create_task(self._materialize_draft(written))

    async def _materialize_draft(self, written: ItemFields | None = None) -> bool:
        if written is None:
            written = self._buffer.fields.normalized()
        request = self._buffer.to_create_request(written)
        try:
            created = await self._repository.create_item(request)
        except VaultError as exc:
            self._is_creating = False
            self._has_pending_changes = False
            self._record_failure("create", exc)
            return False
        try:
            self._adopt_created_item(created, written)
            if self._has_pending_changes and self._autosave_enabled and not self._disposed:
                self._has_pending_changes = False
                await self._autosave.commit_now()
        finally:
            self._is_creating = False
            self._has_pending_changes = False
        return not self._buffer.is_dirty()

    def _adopt_created_item(self, created: Item, written: ItemFields) -> None:
        self._item = created
        self._item_id = created.id
        self._buffer.mark_saved(written)
        self._title_before_edit = written.title
        self.last_error = None
        if self._disposed or self._registry.find_tab(self._tab_id) is None:
            LOGGER.info("Draft %s closed before item %s was created", self._tab_id, created.id)
            return
        title = self._buffer.fields.title.strip() or written.title
        promoted = self._registry.promote_draft_tab(self._tab_id, created.id, created.type, title)
        LOGGER.debug("Draft %s promoted to %s", self._tab_id, promoted.id)
        self._tab_id = promoted.id
        self._title_error = ""
        self._sync_dirty_flag()

    def _record_failure(self, operation: str, exc: VaultError) -> None:
        self.last_error = exc
        if isinstance(exc, ValidationError) and exc.field_name == "title":
            self._title_error = exc.message
        LOGGER.warning("Failed to %s item for tab %s: %s", operation, self._tab_id, exc)
