"""Workspace session: the state container handed to the view layer."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Iterator

from ..services.errors import NotFoundError, VaultError
from ..services.repository import ItemRepository
from ..services.settings import Settings
from .item_editor import ItemEditor
from .labels import labels_for_locale
from .tabs import RemovalReason, TabKind, TabRegistry, TabRemoval

__all__ = ["WorkspaceSession"]

LOGGER = logging.getLogger(__name__)


class WorkspaceSession:
    """Owns the tab registry, the repository and one editor per open item tab."""

    def __init__(
        self,
        *,
        repository: ItemRepository,
        settings: Settings | None = None,
        registry: TabRegistry | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._settings = settings or Settings()
        self._repository = repository
        self._registry = registry or TabRegistry(labels=labels_for_locale(self._settings.locale))
        self._loop = loop
        self._autosave_enabled = self._settings.autosave_enabled
        self._editors: Dict[str, ItemEditor] = {}
        self._closed = False
        self._registry.add_removed_listener(self._handle_tab_removed)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------
    @property
    def registry(self) -> TabRegistry:
        return self._registry

    @property
    def repository(self) -> ItemRepository:
        return self._repository

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def autosave_enabled(self) -> bool:
        return self._autosave_enabled

    def iter_editors(self) -> Iterator[ItemEditor]:
        yield from tuple(self._editors.values())

    def editor_for(self, tab_id: str) -> ItemEditor | None:
        return self._editors.get(tab_id)

    # ------------------------------------------------------------------
    # Editors
    # ------------------------------------------------------------------
    def mount_editor(self, tab_id: str) -> ItemEditor:
        """Return the editor for ``tab_id``, creating it on first use."""

        existing = self._editors.get(tab_id)
        if existing is not None:
            return existing
        if self._closed:
            raise RuntimeError("Workspace session is closed")
        tab = self._registry.get_tab(tab_id)
        if tab.kind is TabKind.ITEM:
            for other in self._editors.values():
                if other.item_id == tab.item_id:
                    raise ValueError(f"Item {tab.item_id} is already bound to tab {other.tab_id}")
        editor = ItemEditor(
            registry=self._registry,
            repository=self._repository,
            tab_id=tab_id,
            autosave_enabled=self._autosave_enabled,
            autosave_delay=self._settings.autosave_delay,
            loop=self._loop,
        )
        self._editors[tab_id] = editor
        LOGGER.debug("Mounted editor for tab %s", tab_id)
        return editor

    async def open_editor(self, tab_id: str) -> ItemEditor:
        editor = self.mount_editor(tab_id)
        if not editor.is_bound and editor.item_id is not None:
            await editor.load()
        return editor

    def unmount_editor(self, tab_id: str) -> None:
        editor = self._editors.pop(tab_id, None)
        if editor is not None:
            editor.dispose()

    def set_autosave_enabled(self, enabled: bool) -> None:
        self._autosave_enabled = bool(enabled)
        self._settings.autosave_enabled = self._autosave_enabled
        for editor in self.iter_editors():
            editor.set_autosave_enabled(self._autosave_enabled)

    async def save_active(self) -> bool:
        tab_id = self._registry.active_tab_id
        if tab_id is None:
            return False
        editor = self._editors.get(tab_id)
        if editor is None:
            return False
        return await editor.save()

    # ------------------------------------------------------------------
    # Item operations
    # ------------------------------------------------------------------
    async def delete_item(self, item_id: int) -> bool:
        """Delete ``item_id`` and close every tab showing it."""

        try:
            await self._repository.delete_item(item_id)
        except NotFoundError:
            LOGGER.info("Item %s was already deleted", item_id)
        except VaultError as exc:
            LOGGER.warning("Failed to delete item %s: %s", item_id, exc)
            return False
        closed = self._registry.close_tabs_for_item(item_id)
        LOGGER.debug("Closed %d tab(s) for deleted item %s", len(closed), item_id)
        return True

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        editors = list(self._editors.values())
        self._editors.clear()
        for editor in editors:
            editor.dispose()
        for editor in editors:
            await editor.wait_idle()
        self._registry.remove_removed_listener(self._handle_tab_removed)
        close = getattr(self._repository, "aclose", None)
        if close is not None:
            await close()

    # ------------------------------------------------------------------
    # Registry callbacks
    # ------------------------------------------------------------------
    def _handle_tab_removed(self, removal: TabRemoval) -> None:
        old_id = removal.tab.id
        replacement = removal.replacement
        if removal.reason is RemovalReason.PROMOTED and replacement is not None:
            editor = self._editors.pop(old_id, None)
            stale = self._editors.pop(replacement.id, None)
            if stale is not None and stale is not editor:
                stale.dispose()
            if editor is not None:
                self._editors[replacement.id] = editor
            return
        if replacement is not None and replacement.id == old_id:
            # The slot id now belongs to the replacement; its editor was re-keyed above.
            return
        editor = self._editors.pop(old_id, None)
        if editor is not None:
            editor.dispose()
            LOGGER.debug("Disposed editor for %s tab %s", removal.reason.value, old_id)
