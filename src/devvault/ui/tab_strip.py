"""Tab strip that renders the tab registry with optional Qt widgets."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from ..workspace.tabs import Tab, TabKind, TabRegistry

try:  # pragma: no cover - Qt imports are optional during tests
    from PySide6.QtWidgets import QApplication, QMessageBox, QTabBar
except Exception:  # pragma: no cover - PySide6 not available
    QApplication = None  # type: ignore[assignment]
    QMessageBox = None  # type: ignore[assignment]
    QTabBar = None  # type: ignore[assignment]

__all__ = ["TabLabel", "TabStrip", "format_tab_label"]

LOGGER = logging.getLogger(__name__)
DIRTY_PREFIX = "* "


@dataclass(slots=True)
class TabLabel:
    """Display metadata for one tab in the strip."""

    tab_id: str
    text: str
    tooltip: str
    is_active: bool
    is_preview: bool
    is_dirty: bool


def format_tab_label(tab: Tab, active_tab_id: str | None = None) -> TabLabel:
    text = f"{DIRTY_PREFIX}{tab.title}" if tab.is_dirty else tab.title
    if tab.kind is TabKind.DOC_ENTRY and tab.doc_path:
        tooltip = tab.doc_path
    elif tab.item_type is not None:
        tooltip = f"{tab.title} ({tab.item_type.value})"
    else:
        tooltip = tab.title
    return TabLabel(
        tab_id=tab.id,
        text=text,
        tooltip=tooltip,
        is_active=tab.id == active_tab_id,
        is_preview=tab.is_preview,
        is_dirty=tab.is_dirty,
    )


class TabStrip:
    """Mirrors :class:`TabRegistry` into a ``QTabBar`` or, headless, a label list."""

    def __init__(self, registry: TabRegistry, parent: Any | None = None) -> None:
        self._registry = registry
        self._labels: list[TabLabel] = []
        self._syncing = False
        self._prompting = False
        self._qt_bar = self._build_qt_tab_bar(parent)
        self._registry.add_change_listener(self.refresh)
        self.refresh()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    @property
    def labels(self) -> list[TabLabel]:
        return list(self._labels)

    @property
    def registry(self) -> TabRegistry:
        return self._registry

    def widget(self) -> Any | None:
        """Return the underlying :class:`QTabBar` when available."""

        return self._qt_bar

    def refresh(self) -> None:
        active_id = self._registry.active_tab_id
        self._labels = [format_tab_label(tab, active_id) for tab in self._registry.iter_tabs()]
        if self._qt_bar is not None:
            self._render_qt()
            if self._registry.pending_close_tab_id is not None and not self._prompting:
                self._prompt_close()

    def detach(self) -> None:
        self._registry.remove_change_listener(self.refresh)

    # ------------------------------------------------------------------
    # User gestures (Qt signals land here; tests call them directly)
    # ------------------------------------------------------------------
    def click(self, index: int) -> None:
        tab_id = self._tab_id_at(index)
        if tab_id is not None:
            self._registry.select_tab(tab_id)

    def double_click(self, index: int) -> None:
        tab_id = self._tab_id_at(index)
        if tab_id is not None:
            self._registry.pin_tab(tab_id)

    def close_requested(self, index: int) -> None:
        tab_id = self._tab_id_at(index)
        if tab_id is not None:
            self._registry.request_close_tab(tab_id)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _tab_id_at(self, index: int) -> str | None:
        if 0 <= index < len(self._labels):
            return self._labels[index].tab_id
        return None

    def _render_qt(self) -> None:  # pragma: no cover - Qt specific
        bar = self._qt_bar
        self._syncing = True
        try:
            while bar.count() > len(self._labels):
                bar.removeTab(bar.count() - 1)
            while bar.count() < len(self._labels):
                bar.addTab("")
            for index, label in enumerate(self._labels):
                bar.setTabText(index, label.text)
                bar.setTabToolTip(index, label.tooltip)
                bar.setTabData(index, label.tab_id)
                if label.is_active:
                    bar.setCurrentIndex(index)
        finally:
            self._syncing = False

    def _prompt_close(self) -> None:  # pragma: no cover - Qt specific
        tab_id = self._registry.pending_close_tab_id
        tab = self._registry.find_tab(tab_id) if tab_id else None
        if tab is None or QMessageBox is None:
            return
        labels = self._registry.labels
        self._prompting = True
        try:
            answer = QMessageBox.question(
                self._qt_bar,
                labels.get("close.confirm_title"),
                labels.get("close.confirm_body", title=tab.title),
            )
        finally:
            self._prompting = False
        if answer == QMessageBox.StandardButton.Yes:
            self._registry.confirm_close_tab()
        else:
            self._registry.cancel_close_tab()

    def _handle_qt_current_changed(self, index: int) -> None:  # pragma: no cover - Qt specific
        if not self._syncing:
            self.click(index)

    def _build_qt_tab_bar(self, parent: Any | None) -> Any | None:
        if QTabBar is None or QApplication is None:
            return None
        try:
            if QApplication.instance() is None:
                return None
        except Exception:
            return None

        try:
            bar = QTabBar(parent)
        except Exception:
            LOGGER.debug("Unable to construct QTabBar", exc_info=True)
            return None

        try:
            bar.setObjectName("dv-tab-strip")
            bar.setTabsClosable(True)
            bar.setExpanding(False)
            bar.currentChanged.connect(self._handle_qt_current_changed)
            bar.tabBarDoubleClicked.connect(self.double_click)
            bar.tabCloseRequested.connect(self.close_requested)
        except Exception:
            pass
        return bar
