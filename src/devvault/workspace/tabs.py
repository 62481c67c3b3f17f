"""Tab registry: the ordered set of open workspace tabs and their selection."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Iterable, Iterator, List, Optional, Protocol

from ..services.repository import ItemType
from .close_gate import CloseConfirmationGate
from .labels import TabLabels

__all__ = [
    "Tab",
    "TabKind",
    "TabRegistry",
    "TabRemoval",
    "RemovalReason",
    "ActiveTabListener",
]

LOGGER = logging.getLogger(__name__)


class TabKind(str, Enum):
    ITEM = "item"
    DRAFT = "draft"
    NEW = "new"
    DOCUMENTATION = "documentation"
    DOC_ENTRY = "docEntry"


class RemovalReason(str, Enum):
    CLOSED = "closed"
    REPLACED = "replaced"
    PROMOTED = "promoted"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class Tab:
    """Immutable description of one open tab.

    Tabs are replaced, never mutated, so callers holding an old instance keep
    a consistent view of the registry at the time they read it.
    """

    id: str
    kind: TabKind
    title: str
    is_pinned: bool = False
    is_dirty: bool = False
    item_id: int | None = None
    item_type: ItemType | None = None
    doc_id: int | None = None
    doc_path: str | None = None
    created_at: datetime = field(default_factory=_utcnow)

    @property
    def is_preview(self) -> bool:
        return not self.is_pinned


@dataclass(frozen=True, slots=True)
class TabRemoval:
    """Describes a tab leaving the registry and what took its slot, if anything."""

    tab: Tab
    reason: RemovalReason
    replacement: Tab | None = None


class ActiveTabListener(Protocol):
    """Callback signature fired whenever the active tab changes."""

    def __call__(self, tab: Optional[Tab]) -> None:  # pragma: no cover - protocol
        ...


ChangeListener = Callable[[], None]
RemovedListener = Callable[[TabRemoval], None]


class TabRegistry:
    """Single source of truth for open tabs, preview slots and the active tab.

    Invariants held after every public call:

    * tab ids are unique;
    * at most one unpinned ``ITEM`` tab and at most one unpinned ``DOC_ENTRY``
      tab exist (drafts, new tabs and the documentation browser are pinned);
    * ``active_tab_id`` is ``None`` only when no tabs are open;
    * at most one tab is bound to any persisted item id.
    """

    def __init__(
        self,
        *,
        labels: TabLabels | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._tabs: List[Tab] = []
        self._active_tab_id: str | None = None
        self._gate = CloseConfirmationGate()
        self._labels = labels or TabLabels()
        self._clock = clock or time.time
        self._change_listeners: List[ChangeListener] = []
        self._active_listeners: List[ActiveTabListener] = []
        self._removed_listeners: List[RemovedListener] = []

    # ------------------------------------------------------------------
    # Opening tabs
    # ------------------------------------------------------------------
    def open_item_tab(
        self,
        item_id: int,
        item_type: ItemType | str,
        title: str,
        pin: bool = False,
    ) -> Tab:
        """Open (or focus) the tab for a persisted item.

        Unpinned opens reuse the current item preview slot in place so that
        quick browsing does not grow the tab strip.
        """

        previous_active = self._active_tab_id
        index = self._find_index(lambda tab: tab.kind is TabKind.ITEM and tab.item_id == item_id)
        if index is not None:
            existing = self._tabs[index]
            if pin and not existing.is_pinned:
                existing = replace(existing, is_pinned=True)
                self._tabs[index] = existing
            self._active_tab_id = existing.id
            self._emit(previous_active)
            return existing

        tab = Tab(
            id=f"item-{item_id}",
            kind=TabKind.ITEM,
            title=title,
            is_pinned=pin,
            item_id=item_id,
            item_type=ItemType.coerce(item_type),
        )
        return self._place(tab, previous_active)

    def open_draft_item_tab(self, item_type: ItemType | str) -> Tab:
        """Append a pinned draft tab for content that does not exist yet."""

        previous_active = self._active_tab_id
        resolved_type = ItemType.coerce(item_type)
        tab = Tab(
            id=self._unique_id(f"draft-{self._timestamp()}"),
            kind=TabKind.DRAFT,
            title=self._labels.draft_title(resolved_type),
            is_pinned=True,
            item_type=resolved_type,
        )
        self._tabs.append(tab)
        self._active_tab_id = tab.id
        self._emit(previous_active)
        return tab

    def open_new_tab(self) -> Tab:
        previous_active = self._active_tab_id
        tab = Tab(
            id=self._unique_id(f"new-{self._timestamp()}"),
            kind=TabKind.NEW,
            title=self._labels.new_tab(),
            is_pinned=True,
        )
        self._tabs.append(tab)
        self._active_tab_id = tab.id
        self._emit(previous_active)
        return tab

    def open_documentation_tab(self) -> Tab:
        """Focus the documentation browser, creating it on first use."""

        previous_active = self._active_tab_id
        index = self._find_index(lambda tab: tab.kind is TabKind.DOCUMENTATION)
        if index is not None:
            existing = self._tabs[index]
            self._active_tab_id = existing.id
            self._emit(previous_active)
            return existing
        tab = Tab(
            id=self._unique_id("documentation"),
            kind=TabKind.DOCUMENTATION,
            title=self._labels.documentation(),
            is_pinned=True,
        )
        self._tabs.append(tab)
        self._active_tab_id = tab.id
        self._emit(previous_active)
        return tab

    def open_doc_entry_tab(
        self,
        doc_id: int,
        doc_path: str,
        title: str,
        pin: bool = False,
    ) -> Tab:
        previous_active = self._active_tab_id
        index = self._find_index(
            lambda tab: tab.kind is TabKind.DOC_ENTRY and tab.doc_id == doc_id and tab.doc_path == doc_path
        )
        if index is not None:
            existing = self._tabs[index]
            if pin and not existing.is_pinned:
                existing = replace(existing, is_pinned=True)
                self._tabs[index] = existing
            self._active_tab_id = existing.id
            self._emit(previous_active)
            return existing

        tab = Tab(
            id=f"doc-entry-{doc_id}-{self._timestamp()}",
            kind=TabKind.DOC_ENTRY,
            title=title,
            is_pinned=pin,
            doc_id=doc_id,
            doc_path=doc_path,
        )
        return self._place(tab, previous_active)

    # ------------------------------------------------------------------
    # Selection, pinning, titles, dirty flags
    # ------------------------------------------------------------------
    def select_tab(self, tab_id: str) -> bool:
        """Activate ``tab_id``; unknown ids are ignored so late events are harmless."""

        if self._find_index_by_id(tab_id) is None:
            LOGGER.debug("select_tab ignored unknown tab %s", tab_id)
            return False
        previous_active = self._active_tab_id
        if previous_active == tab_id:
            return True
        self._active_tab_id = tab_id
        self._emit(previous_active)
        return True

    def pin_tab(self, tab_id: str) -> bool:
        index = self._find_index_by_id(tab_id)
        if index is None:
            return False
        tab = self._tabs[index]
        if not tab.is_pinned:
            self._tabs[index] = replace(tab, is_pinned=True)
            self._emit(self._active_tab_id)
        return True

    def update_tab_title(self, item_id: int, title: str) -> None:
        changed = False
        for index, tab in enumerate(self._tabs):
            if tab.item_id == item_id and tab.title != title:
                self._tabs[index] = replace(tab, title=title)
                changed = True
        if changed:
            self._emit(self._active_tab_id)

    def update_tab_title_by_id(self, tab_id: str, title: str) -> None:
        index = self._find_index_by_id(tab_id)
        if index is None:
            return
        tab = self._tabs[index]
        if tab.title != title:
            self._tabs[index] = replace(tab, title=title)
            self._emit(self._active_tab_id)

    def set_tab_dirty(self, tab_id: str, is_dirty: bool) -> None:
        index = self._find_index_by_id(tab_id)
        if index is None:
            return
        tab = self._tabs[index]
        if tab.is_dirty != is_dirty:
            self._tabs[index] = replace(tab, is_dirty=is_dirty)
            self._emit(self._active_tab_id)

    # ------------------------------------------------------------------
    # Draft promotion
    # ------------------------------------------------------------------
    def promote_draft_tab(
        self,
        draft_tab_id: str,
        item_id: int,
        item_type: ItemType | str,
        title: str,
    ) -> Tab:
        """Swap a draft tab for the item tab of its freshly created item.

        The swap happens in place: same position, same pin state, dirty flag
        cleared, and the promoted tab becomes active. No observer ever sees the
        draft and its item tab at the same time.
        """

        index = self._find_index_by_id(draft_tab_id)
        if index is None:
            raise KeyError(f"Unknown tab_id: {draft_tab_id}")
        draft = self._tabs[index]
        if draft.kind is not TabKind.DRAFT:
            raise ValueError(f"Tab {draft_tab_id} is not a draft (kind={draft.kind.value})")

        previous_active = self._active_tab_id
        promoted = Tab(
            id=f"item-{item_id}",
            kind=TabKind.ITEM,
            title=title,
            is_pinned=draft.is_pinned,
            is_dirty=False,
            item_id=item_id,
            item_type=ItemType.coerce(item_type),
            created_at=draft.created_at,
        )
        removals = [TabRemoval(draft, RemovalReason.PROMOTED, promoted)]
        self._tabs[index] = promoted
        duplicate = self._find_index(
            lambda tab: tab is not promoted and tab.kind is TabKind.ITEM and tab.item_id == item_id
        )
        if duplicate is not None:
            stale = self._tabs.pop(duplicate)
            self._gate.discard(stale.id)
            removals.append(TabRemoval(stale, RemovalReason.REPLACED, promoted))
            LOGGER.warning("Promotion of %s replaced an existing tab for item %s", draft_tab_id, item_id)
        self._gate.retarget(draft_tab_id, promoted.id)
        self._active_tab_id = promoted.id
        self._emit(previous_active, removals)
        return promoted

    # ------------------------------------------------------------------
    # Closing
    # ------------------------------------------------------------------
    def close_tab(self, tab_id: str) -> Tab | None:
        """Close ``tab_id`` and pick the tab that slid into its slot as active."""

        index = self._find_index_by_id(tab_id)
        if index is None:
            return None
        previous_active = self._active_tab_id
        tab = self._tabs.pop(index)
        self._gate.discard(tab_id)
        if previous_active == tab_id:
            if self._tabs:
                self._active_tab_id = self._tabs[min(index, len(self._tabs) - 1)].id
            else:
                self._active_tab_id = None
        self._emit(previous_active, [TabRemoval(tab, RemovalReason.CLOSED)])
        return tab

    def request_close_tab(self, tab_id: str) -> bool:
        """Close clean tabs immediately; park dirty ones behind the confirmation gate.

        Returns ``True`` when the tab was closed.
        """

        index = self._find_index_by_id(tab_id)
        if index is None:
            return False
        if not self._tabs[index].is_dirty:
            self.close_tab(tab_id)
            return True
        if self._gate.request(tab_id):
            self._emit(self._active_tab_id)
        return False

    def confirm_close_tab(self) -> Tab | None:
        tab_id = self._gate.confirm()
        if tab_id is None:
            return None
        closed = self.close_tab(tab_id)
        if closed is None:
            self._emit(self._active_tab_id)
        return closed

    def cancel_close_tab(self) -> str | None:
        tab_id = self._gate.cancel()
        if tab_id is not None:
            self._emit(self._active_tab_id)
        return tab_id

    def close_tabs_for_item(self, item_id: int) -> list[Tab]:
        """Close every tab bound to ``item_id`` without confirmation (item deleted)."""

        targets = [tab.id for tab in self._tabs if tab.item_id == item_id]
        closed: list[Tab] = []
        for tab_id in targets:
            tab = self.close_tab(tab_id)
            if tab is not None:
                closed.append(tab)
        return closed

    # ------------------------------------------------------------------
    # Query helpers
    # ------------------------------------------------------------------
    @property
    def tabs(self) -> tuple[Tab, ...]:
        return tuple(self._tabs)

    @property
    def active_tab_id(self) -> str | None:
        return self._active_tab_id

    @property
    def active_tab(self) -> Tab | None:
        if self._active_tab_id is None:
            return None
        return self.find_tab(self._active_tab_id)

    @property
    def pending_close_tab_id(self) -> str | None:
        return self._gate.pending_tab_id

    @property
    def close_gate(self) -> CloseConfirmationGate:
        return self._gate

    @property
    def labels(self) -> TabLabels:
        return self._labels

    def iter_tabs(self) -> Iterator[Tab]:
        yield from tuple(self._tabs)

    def tab_ids(self) -> Iterable[str]:
        return tuple(tab.id for tab in self._tabs)

    def tab_count(self) -> int:
        return len(self._tabs)

    def tab_index(self, tab_id: str) -> int | None:
        return self._find_index_by_id(tab_id)

    def find_tab(self, tab_id: str) -> Tab | None:
        index = self._find_index_by_id(tab_id)
        return self._tabs[index] if index is not None else None

    def get_tab(self, tab_id: str) -> Tab:
        tab = self.find_tab(tab_id)
        if tab is None:
            raise KeyError(f"Unknown tab_id: {tab_id}")
        return tab

    def find_item_tab(self, item_id: int) -> Tab | None:
        index = self._find_index(lambda tab: tab.kind is TabKind.ITEM and tab.item_id == item_id)
        return self._tabs[index] if index is not None else None

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------
    def add_change_listener(self, listener: ChangeListener) -> None:
        self._change_listeners.append(listener)

    def remove_change_listener(self, listener: ChangeListener) -> None:
        try:
            self._change_listeners.remove(listener)
        except ValueError:
            pass

    def add_active_listener(self, listener: ActiveTabListener) -> None:
        self._active_listeners.append(listener)

    def remove_active_listener(self, listener: ActiveTabListener) -> None:
        try:
            self._active_listeners.remove(listener)
        except ValueError:
            pass

    def add_removed_listener(self, listener: RemovedListener) -> None:
        self._removed_listeners.append(listener)

    def remove_removed_listener(self, listener: RemovedListener) -> None:
        try:
            self._removed_listeners.remove(listener)
        except ValueError:
            pass

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _place(self, tab: Tab, previous_active: str | None) -> Tab:
        removals: list[TabRemoval] = []
        preview_index = None if tab.is_pinned else self._preview_index(tab.kind)
        if preview_index is not None and self._tabs[preview_index].is_dirty:
            # Unsaved edits keep their tab; it leaves the preview slot instead.
            self._tabs[preview_index] = replace(self._tabs[preview_index], is_pinned=True)
            preview_index = None
        if preview_index is not None:
            previous = self._tabs[preview_index]
            tab = replace(tab, id=self._unique_id(tab.id, ignore=previous.id))
            self._tabs[preview_index] = tab
            self._gate.discard(previous.id)
            removals.append(TabRemoval(previous, RemovalReason.REPLACED, tab))
        else:
            tab = replace(tab, id=self._unique_id(tab.id))
            self._tabs.append(tab)
        self._active_tab_id = tab.id
        self._emit(previous_active, removals)
        return tab

    def _preview_index(self, kind: TabKind) -> int | None:
        return self._find_index(lambda candidate: candidate.kind is kind and not candidate.is_pinned)

    def _find_index(self, predicate: Callable[[Tab], bool]) -> int | None:
        for index, tab in enumerate(self._tabs):
            if predicate(tab):
                return index
        return None

    def _find_index_by_id(self, tab_id: str) -> int | None:
        return self._find_index(lambda tab: tab.id == tab_id)

    def _unique_id(self, base: str, *, ignore: str | None = None) -> str:
        taken = {tab.id for tab in self._tabs if tab.id != ignore}
        if base not in taken:
            return base
        suffix = 2
        while f"{base}-{suffix}" in taken:
            suffix += 1
        return f"{base}-{suffix}"

    def _timestamp(self) -> int:
        return int(self._clock() * 1000)

    def _emit(self, previous_active: str | None, removals: Iterable[TabRemoval] = ()) -> None:
        for removal in removals:
            for listener in list(self._removed_listeners):
                self._invoke(listener, removal)
        if previous_active != self._active_tab_id:
            active = self.active_tab
            for listener in list(self._active_listeners):
                self._invoke(listener, active)
        for listener in list(self._change_listeners):
            self._invoke(listener)

    @staticmethod
    def _invoke(listener: Callable[..., None], *args: object) -> None:
        try:
            listener(*args)
        except Exception:  # pragma: no cover - listener isolation
            LOGGER.exception("Tab registry listener failed")
