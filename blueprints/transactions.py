from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user

from ledger.services import get_services
from ledger.withdrawals import WithdrawalConfig

bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")

DETAIL_FIELDS = tuple(f for fields in WithdrawalConfig.REQUIRED_DETAILS.values() for f in fields)


#===========================================================================
#      RECHARGE REQUEST
#==============================================================================
@bp.route("/recharge", methods=["POST"])
@login_required
def recharge():
    data = request.get_json(silent=True) or {}
    recharge = get_services().recharges.request_recharge(
        current_user.id,
        data.get("amount"),
        data.get("utr"),
        data.get("payment_method") or "upi",
    )
    return jsonify({
        "message": "Recharge request submitted successfully",
        "recharge": recharge.to_dict(),
    }), 201


#===========================================================================
#      WITHDRAWAL REQUEST
#==============================================================================
@bp.route("/withdrawal", methods=["POST"])
@login_required
def withdrawal():
    """Bank or UPI details arrive as flat fields next to amount and method."""
    data = request.get_json(silent=True) or {}
    details = {field: data.get(field) for field in DETAIL_FIELDS if field in data}

    withdrawal = get_services().withdrawals.request_withdrawal(
        current_user.id,
        data.get("amount"),
        data.get("method"),
        details,
    )
    return jsonify({
        "message": "Withdrawal request submitted successfully",
        "withdrawal": withdrawal.to_dict(),
    }), 201
