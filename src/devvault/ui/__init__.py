"""View-layer bindings for the workspace."""

from .tab_strip import TabLabel, TabStrip, format_tab_label

__all__ = ["TabLabel", "TabStrip", "format_tab_label"]
