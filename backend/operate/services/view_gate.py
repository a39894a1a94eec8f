"""Navigation visibility and forced redirects derived from role/permission signals.

State machine: ``loading -> {granted, denied-redirected}``. A terminal state goes back to
``loading`` only through ``ViewGate.begin_refresh()`` (a full permission refresh).
"""
from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple

DEFAULT_VIEW = 'ah-balancer'

REQUIRES_ADMIN = 'admin'
REQUIRES_INVENTORY = 'inventory'


class GateState(str, Enum):
    LOADING = 'loading'
    GRANTED = 'granted'
    DENIED_REDIRECTED = 'denied-redirected'


@dataclass(frozen=True)
class GateSignals:
    is_admin: bool = False
    can_view_inventory: bool = False
    loading: bool = True


@dataclass(frozen=True)
class NavigationItem:
    id: str
    label: str
    description: str = ''
    requires: Optional[str] = None

    def to_json(self) -> Dict:
        return {'id': self.id, 'label': self.label, 'description': self.description, 'requires': self.requires}


NAVIGATION_ITEMS: Tuple[NavigationItem, ...] = (
    NavigationItem('ah-balancer', 'AH Balancer', 'Interactive 13SxP Optimizer'),
    NavigationItem('row-column', 'Row & Column Calculator', 'Simple grid with row sums'),
    NavigationItem('inventory', 'Inventory', 'Stock items, transactions and COGS', REQUIRES_INVENTORY),
    NavigationItem('sales', 'Sales', 'Sales transactions', REQUIRES_INVENTORY),
    NavigationItem('invoicing', 'Invoicing', 'Estimates and invoices', REQUIRES_INVENTORY),
    NavigationItem('purchases', 'Purchases', 'Purchase orders and bills', REQUIRES_INVENTORY),
    NavigationItem('contacts', 'Contacts', 'Customers and vendors', REQUIRES_INVENTORY),
    NavigationItem('accounts', 'Accounts', 'Receivables and payables', REQUIRES_INVENTORY),
    NavigationItem('accounting', 'Accounting Dashboard', 'Accounting overview', REQUIRES_INVENTORY),
    NavigationItem('pl', 'P&L', 'Profit and loss reporting', REQUIRES_INVENTORY),
    NavigationItem('admin', 'Admin Panel', 'Users, roles and branches', REQUIRES_ADMIN),
)
_ITEMS_BY_ID = {item.id: item for item in NAVIGATION_ITEMS}


@dataclass(frozen=True)
class ViewDecision:
    view: str
    redirected: bool
    state: GateState

    def to_json(self) -> Dict:
        return {'view': self.view, 'redirected': self.redirected, 'state': self.state.value}


def is_allowed(item: NavigationItem, signals: GateSignals) -> bool:
    if item.requires is None:
        return True
    if signals.loading:
        return False
    if item.requires == REQUIRES_ADMIN:
        return signals.is_admin
    if item.requires == REQUIRES_INVENTORY:
        return signals.can_view_inventory
    return False


def visible_items(signals: GateSignals) -> List[NavigationItem]:
    return [item for item in NAVIGATION_ITEMS if is_allowed(item, signals)]


def resolve_view(requested: Optional[str], signals: GateSignals) -> ViewDecision:
    """Decide which view to show; never redirects while permission data is still loading."""
    view = requested or DEFAULT_VIEW
    if signals.loading:
        return ViewDecision(view, False, GateState.LOADING)
    item = _ITEMS_BY_ID.get(view)
    if item is None or not is_allowed(item, signals):
        return ViewDecision(DEFAULT_VIEW, view != DEFAULT_VIEW, GateState.DENIED_REDIRECTED)
    return ViewDecision(view, False, GateState.GRANTED)


class ViewGate:
    """Reactive holder: re-evaluates only when (current_view, signals) change."""

    def __init__(self, current_view: str = DEFAULT_VIEW):
        self.current_view = current_view
        self.signals = GateSignals(loading=True)
        self.state = GateState.LOADING
        self._last_inputs: Optional[Tuple[str, GateSignals]] = None

    def update(self, current_view: Optional[str] = None, signals: Optional[GateSignals] = None) -> ViewDecision:
        view = current_view or self.current_view
        sig = signals or self.signals
        inputs = (view, sig)
        if inputs == self._last_inputs:
            return ViewDecision(self.current_view, False, self.state)
        self._last_inputs = inputs
        decision = resolve_view(view, sig)
        self.signals = sig
        self.current_view = decision.view
        self.state = decision.state
        if decision.redirected:
            # the redirect itself changes current_view; remember it so the next identical update is a no-op
            self._last_inputs = (decision.view, sig)
        return decision

    def begin_refresh(self):
        self.signals = GateSignals(
            is_admin=self.signals.is_admin,
            can_view_inventory=self.signals.can_view_inventory,
            loading=True,
        )
        self.state = GateState.LOADING
        self._last_inputs = None

    def navigation(self) -> List[NavigationItem]:
        return visible_items(self.signals)
