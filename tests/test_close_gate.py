from devvault.workspace.close_gate import CloseConfirmationGate, GateState


def test_gate_cycles_between_idle_and_awaiting() -> None:
    gate = CloseConfirmationGate()
    assert gate.state is GateState.IDLE

    assert gate.request("item-1") is True
    assert gate.state is GateState.AWAITING_CONFIRMATION
    assert gate.pending_tab_id == "item-1"

    assert gate.confirm() == "item-1"
    assert gate.state is GateState.IDLE
    assert gate.confirm() is None


def test_gate_keeps_first_request() -> None:
    gate = CloseConfirmationGate()
    gate.request("item-1")

    assert gate.request("item-2") is False
    assert gate.request("item-1") is True
    assert gate.cancel() == "item-1"
    assert gate.cancel() is None


def test_retarget_and_discard_only_touch_the_pending_tab() -> None:
    gate = CloseConfirmationGate()
    gate.request("draft-1")

    gate.retarget("draft-9", "item-9")
    gate.discard("item-3")
    assert gate.pending_tab_id == "draft-1"

    gate.retarget("draft-1", "item-7")
    assert gate.pending_tab_id == "item-7"
    gate.discard("item-7")
    assert gate.state is GateState.IDLE
