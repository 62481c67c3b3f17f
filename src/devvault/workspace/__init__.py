"""Workspace tabs, draft buffers and the editors bound to them."""

from .autosave import AutosaveScheduler, DebounceTimer
from .close_gate import CloseConfirmationGate, GateState
from .draft_buffer import DraftBuffer, ItemFields, parse_tags
from .item_editor import EditorState, ItemEditor
from .labels import TabLabels, labels_for_locale
from .session import WorkspaceSession
from .tabs import RemovalReason, Tab, TabKind, TabRegistry, TabRemoval

__all__ = [
    "AutosaveScheduler",
    "CloseConfirmationGate",
    "DebounceTimer",
    "DraftBuffer",
    "EditorState",
    "GateState",
    "ItemEditor",
    "ItemFields",
    "RemovalReason",
    "Tab",
    "TabKind",
    "TabLabels",
    "TabRegistry",
    "TabRemoval",
    "WorkspaceSession",
    "labels_for_locale",
    "parse_tags",
]
