"""Headless tests for the tab strip binding."""

from __future__ import annotations

from devvault.ui.tab_strip import TabStrip, format_tab_label
from devvault.workspace.tabs import TabRegistry


def test_format_tab_label_marks_dirty_and_preview(registry: TabRegistry) -> None:
    tab = registry.open_item_tab(1, "snippet", "Deploy")
    registry.set_tab_dirty(tab.id, True)

    label = format_tab_label(registry.get_tab(tab.id), registry.active_tab_id)

    assert label.text == "* Deploy"
    assert label.tooltip == "Deploy (snippet)"
    assert label.is_active
    assert label.is_preview
    assert label.is_dirty


def test_doc_entry_tooltip_shows_path(registry: TabRegistry) -> None:
    tab = registry.open_doc_entry_tab(2, "guide/setup.md", "Setup")

    assert format_tab_label(tab).tooltip == "guide/setup.md"
    assert format_tab_label(tab).is_active is False


def test_strip_rerenders_on_registry_changes(registry: TabRegistry) -> None:
    strip = TabStrip(registry)
    assert strip.widget() is None
    assert strip.labels == []

    registry.open_new_tab()
    registry.open_item_tab(3, "note", "Retro")

    assert [label.text for label in strip.labels] == ["New tab", "Retro"]
    assert strip.labels[1].is_active


def test_gestures_drive_the_registry(registry: TabRegistry) -> None:
    strip = TabStrip(registry)
    first = registry.open_item_tab(1, "snippet", "A", pin=True)
    second = registry.open_item_tab(2, "snippet", "B")

    strip.click(0)
    assert registry.active_tab_id == first.id

    strip.double_click(1)
    assert registry.get_tab(second.id).is_pinned

    registry.set_tab_dirty(second.id, True)
    strip.close_requested(1)
    assert registry.pending_close_tab_id == second.id

    strip.close_requested(0)
    assert registry.find_tab(first.id) is None

    strip.click(42)
    assert registry.active_tab_id == second.id


def test_detach_stops_rendering(registry: TabRegistry) -> None:
    strip = TabStrip(registry)
    strip.detach()

    registry.open_new_tab()

    assert strip.labels == []
