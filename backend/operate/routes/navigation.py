from flask import Blueprint, request
from operate.decorators.auth import authorization_service
from operate.services.identity import current_user_id
from operate.services.permissions import PermissionEvaluator
from operate.services.view_gate import DEFAULT_VIEW, GateSignals, resolve_view, visible_items

nav_bp = Blueprint('navigation', __name__)


@nav_bp.get('/navigation')
def navigation():
    """Visible navigation entries and the view to show for ``?view=``.

    Signed-out sessions get the public entries only.
    """
    caps = PermissionEvaluator(authorization_service()).capabilities(current_user_id())
    signals = GateSignals(is_admin=caps.is_admin, can_view_inventory=caps.can_view_inventory, loading=False)
    decision = resolve_view(request.args.get('view') or DEFAULT_VIEW, signals)
    return {
        'items': [item.to_json() for item in visible_items(signals)],
        'view': decision.to_json(),
        'capabilities': caps.to_json(),
    }
