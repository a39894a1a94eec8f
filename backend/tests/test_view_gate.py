from operate.services.view_gate import (
    DEFAULT_VIEW,
    NAVIGATION_ITEMS,
    GateSignals,
    GateState,
    ViewGate,
    resolve_view,
    visible_items,
)

READY = dict(loading=False)


def _ids(signals):
    return {item.id for item in visible_items(signals)}


def test_admin_entry_hidden_for_non_admin():
    assert 'admin' not in _ids(GateSignals(is_admin=False, can_view_inventory=True, **READY))
    assert 'admin' in _ids(GateSignals(is_admin=True, can_view_inventory=True, **READY))


def test_inventory_entries_hidden_without_capability():
    gated = {i.id for i in NAVIGATION_ITEMS if i.requires == 'inventory'}
    assert not (gated & _ids(GateSignals(is_admin=True, can_view_inventory=False, **READY)))
    assert gated <= _ids(GateSignals(can_view_inventory=True, **READY))


def test_loading_lists_public_entries_only():
    ids = _ids(GateSignals(is_admin=True, can_view_inventory=True, loading=True))
    assert ids == {'ah-balancer', 'row-column'}


def test_no_redirect_while_loading():
    decision = resolve_view('admin', GateSignals(loading=True))
    assert decision.view == 'admin' and not decision.redirected
    assert decision.state is GateState.LOADING


def test_non_admin_on_admin_view_redirected_to_default():
    decision = resolve_view('admin', GateSignals(is_admin=False, **READY))
    assert decision.view == DEFAULT_VIEW and decision.redirected
    assert decision.state is GateState.DENIED_REDIRECTED


def test_inventory_view_redirected_without_capability():
    decision = resolve_view('sales', GateSignals(can_view_inventory=False, **READY))
    assert decision.view == DEFAULT_VIEW and decision.redirected


def test_unknown_view_redirected():
    assert resolve_view('nope', GateSignals(**READY)).view == DEFAULT_VIEW


def test_granted_view_kept():
    decision = resolve_view('inventory', GateSignals(can_view_inventory=True, **READY))
    assert decision.view == 'inventory' and decision.state is GateState.GRANTED


def test_gate_state_machine():
    gate = ViewGate('admin')
    first = gate.update(signals=GateSignals(loading=True))
    assert first.state is GateState.LOADING and gate.current_view == 'admin'

    settled = gate.update(signals=GateSignals(is_admin=False, **READY))
    assert settled.redirected and gate.current_view == DEFAULT_VIEW
    assert gate.state is GateState.DENIED_REDIRECTED

    # identical inputs: no re-evaluation, no second redirect
    again = gate.update(signals=GateSignals(is_admin=False, **READY))
    assert not again.redirected and gate.state is GateState.DENIED_REDIRECTED

    gate.begin_refresh()
    assert gate.state is GateState.LOADING
    assert {i.id for i in gate.navigation()} == {'ah-balancer', 'row-column'}

    granted = gate.update('admin', GateSignals(is_admin=True, **READY))
    assert granted.state is GateState.GRANTED and gate.current_view == 'admin'
