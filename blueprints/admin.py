#======================================================================================
#
# ADMIN API: plan catalog and approval of recharge / withdrawal requests
#
#=======================================================================================
from functools import wraps
from flask import Blueprint, jsonify, request
from flask_login import current_user

from extensions import login_manager
from ledger.services import get_services
from logger import app_logger as logger


def admin_required(f):
    """
    Decorator to restrict access to admin-only routes.
    - Anonymous callers get the login manager's 401.
    - Logged-in users without role "admin" get 403.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_user.is_authenticated:
            return login_manager.unauthorized()

        if current_user.role != "admin":
            logger.warning(f"User {current_user.id} denied access to {request.path}")
            return jsonify({"error": "forbidden", "message": "Admin access required"}), 403

        return f(*args, **kwargs)

    return decorated_function


admin_bp = Blueprint("admin", __name__, url_prefix="/api")


#============================================================================================================
#     PLAN CATALOG
#============================================================================================================
@admin_bp.route("/plans/admin/create", methods=["POST"])
@admin_required
def create_plan():
    data = request.get_json(silent=True) or {}
    plan = get_services().plans.create_plan(
        name=data.get("name"),
        price=data.get("price"),
        daily_income=data.get("daily_income"),
        duration_days=data.get("duration_days"),
        total_return=data.get("total_return"),
        is_active=data.get("is_active", True),
    )
    logger.info(f"Admin {current_user.id} created plan {plan.id}")
    return jsonify({"message": "Plan created successfully", "plan": plan.to_dict()}), 201


#============================================================================================================
#     RECHARGE APPROVALS
#============================================================================================================
@admin_bp.route("/transactions/admin/recharges/<recharge_id>/approve", methods=["PATCH"])
@admin_required
def approve_recharge(recharge_id):
    recharge = get_services().recharges.approve_recharge(recharge_id)
    logger.info(f"Admin {current_user.id} approved recharge {recharge_id}")
    return jsonify({"message": "Recharge approved successfully", "recharge": recharge.to_dict()}), 200


@admin_bp.route("/transactions/admin/recharges/<recharge_id>/reject", methods=["PATCH"])
@admin_required
def reject_recharge(recharge_id):
    recharge = get_services().recharges.reject_recharge(recharge_id)
    logger.info(f"Admin {current_user.id} rejected recharge {recharge_id}")
    return jsonify({"message": "Recharge rejected successfully", "recharge": recharge.to_dict()}), 200


#============================================================================================================
#     WITHDRAWAL APPROVALS
#============================================================================================================
@admin_bp.route("/transactions/admin/withdrawals/<withdrawal_id>/approve", methods=["PATCH"])
@admin_required
def approve_withdrawal(withdrawal_id):
    withdrawal = get_services().withdrawals.approve_withdrawal(withdrawal_id)
    logger.info(f"Admin {current_user.id} approved withdrawal {withdrawal_id}")
    return jsonify({"message": "Withdrawal approved successfully", "withdrawal": withdrawal.to_dict()}), 200


@admin_bp.route("/transactions/admin/withdrawals/<withdrawal_id>/reject", methods=["PATCH"])
@admin_required
def reject_withdrawal(withdrawal_id):
    withdrawal = get_services().withdrawals.reject_withdrawal(withdrawal_id)
    logger.info(f"Admin {current_user.id} rejected withdrawal {withdrawal_id}")
    return jsonify({"message": "Withdrawal rejected successfully", "withdrawal": withdrawal.to_dict()}), 200
