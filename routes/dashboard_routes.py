from flask import Blueprint, current_app, jsonify, session

from utils import instructor_required
from utils.forms import query_date, query_period
from utils.session_context import current_context, get_registry
from utils.store import SnapshotStore, StoreUnavailable

dashboard_bp = Blueprint('dashboard', __name__)


@dashboard_bp.route('/dashboard', methods=['GET'])
@instructor_required
def dashboard():
    """Reconciled dashboard; passing ``month``/``date`` switches the selection first."""
    ctx = current_context()
    state = ctx.dashboard(period=query_period(), attendance_date=query_date())
    return jsonify({
        "ok": True,
        "status": ctx.reconciler.status.value,
        "dashboard": state.to_dict(),
    })


@dashboard_bp.route('/health', methods=['GET'])
def health():
    instructor_id = session.get('instructor_id')
    ctx = get_registry().get(int(instructor_id)) if instructor_id else None
    store = ctx.store if ctx else SnapshotStore(current_app._get_current_object(), instructor_id or 0)
    try:
        store.ping()
    except StoreUnavailable as exc:
        current_app.logger.warning("Health check failed: %s", exc)
        return jsonify({"ok": False, "database": False, "error": str(exc)}), 503
    payload = {"ok": True, "database": True}
    if ctx is not None:
        payload["reconciliation"] = {
            "status": ctx.reconciler.status.value,
            "generation": ctx.reconciler.generation,
            "last_error": str(ctx.reconciler.last_error) if ctx.reconciler.last_error else None,
        }
    return jsonify(payload)
