"""One-slot confirmation gate guarding the close of dirty tabs."""

from __future__ import annotations

import logging
from enum import Enum, auto

__all__ = ["CloseConfirmationGate", "GateState"]

LOGGER = logging.getLogger(__name__)


class GateState(Enum):
    IDLE = auto()
    AWAITING_CONFIRMATION = auto()


class CloseConfirmationGate:
    """Holds at most one pending close request.

    The view renders the gate as a modal dialog, so a second request cannot be
    issued while one is pending; if one arrives anyway it is refused and the
    original request stays in place.
    """

    def __init__(self) -> None:
        self._pending_tab_id: str | None = None

    @property
    def state(self) -> GateState:
        if self._pending_tab_id is None:
            return GateState.IDLE
        return GateState.AWAITING_CONFIRMATION

    @property
    def pending_tab_id(self) -> str | None:
        return self._pending_tab_id

    def request(self, tab_id: str) -> bool:
        if self._pending_tab_id is not None and self._pending_tab_id != tab_id:
            LOGGER.debug(
                "Close request for %s ignored; awaiting confirmation for %s",
                tab_id,
                self._pending_tab_id,
            )
            return False
        self._pending_tab_id = tab_id
        return True

    def confirm(self) -> str | None:
        """Resolve the pending request, returning the tab id that should close."""

        tab_id, self._pending_tab_id = self._pending_tab_id, None
        return tab_id

    def cancel(self) -> str | None:
        tab_id, self._pending_tab_id = self._pending_tab_id, None
        return tab_id

    def retarget(self, old_tab_id: str, new_tab_id: str) -> None:
        if self._pending_tab_id == old_tab_id:
            self._pending_tab_id = new_tab_id

    def discard(self, tab_id: str) -> None:
        if self._pending_tab_id == tab_id:
            self._pending_tab_id = None
