from flask import Blueprint, jsonify
from flask_login import login_required, current_user

from ledger.services import get_services

bp = Blueprint("plans", __name__, url_prefix="/api/plans")


# ----------------------------------------------------------
#  PLAN PURCHASE
# ----------------------------------------------------------
@bp.route("/purchase/<plan_id>", methods=["POST"])
@login_required
def purchase(plan_id):
    """
    Buy a plan from the wallet balance. LedgerErrors (insufficient balance,
    monthly limit, unknown plan) are rendered by the app-wide handler.
    """
    services = get_services()
    user_plan, entry = services.plans.purchase_plan(current_user.id, plan_id)
    user = services.store.get_user(current_user.id)

    return jsonify({
        "message": "Plan purchased successfully",
        "userPlan": user_plan.to_dict(),
        "transaction": entry.to_dict(),
        "newBalance": float(user.balance),
    }), 200
