from flask import Blueprint, jsonify, request
from flask_login import login_user, logout_user, login_required, current_user
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from extensions import db
from models import User
from utils import validate_mobile, local_now
from logger import app_logger as logger

#==================================================================================================================

bp = Blueprint("auth", __name__, url_prefix="/api")


#===========================================================================
#      REGISTER ROUTE.
#==============================================================================
@bp.route("/register", methods=["POST"])
def register():
    """Create a wallet owner with a zero balance and start their session."""
    data = request.get_json(silent=True)
    if not data:
        return jsonify({"error": "validation_error", "message": "Invalid or missing JSON body"}), 400

    name = (data.get("name") or "").strip()
    mobile = (data.get("mobile") or "").strip()
    password = data.get("password") or ""

    # -----------------------------------------
    #  BASIC VALIDATION
    # -----------------------------------------
    if not name or not mobile or not password:
        return jsonify({"error": "validation_error", "message": "All fields are required"}), 400

    if not validate_mobile(mobile):
        return jsonify({"error": "validation_error", "message": "Invalid mobile number"}), 400

    if len(password) < 6:
        return jsonify({"error": "validation_error",
                        "message": "Password must be at least 6 characters"}), 400

    if User.query.filter_by(mobile=mobile).first():
        return jsonify({"error": "conflict",
                        "message": "User with this mobile number already exists"}), 409

    try:
        user = User(name=name, mobile=mobile)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({"error": "conflict",
                        "message": "User with this mobile number already exists"}), 409
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Registration failed for {mobile}: {e}")
        return jsonify({"error": "persistence_failure", "message": "Registration failed"}), 500

    login_user(user)
    logger.info(f"New user registered: {user.id} ({mobile})")

    return jsonify({"message": "User registered successfully", "user": user.to_dict()}), 201


#===========================================================================
#      LOGIN / LOGOUT
#==============================================================================
@bp.route("/login", methods=["POST"])
def login():
    data = request.get_json(silent=True) or {}
    mobile = (data.get("mobile") or "").strip()
    password = data.get("password") or ""

    if not mobile or not password:
        return jsonify({"error": "validation_error",
                        "message": "Mobile and password are required"}), 400

    user = User.query.filter_by(mobile=mobile).first()
    if not user or not user.check_password(password):
        logger.warning(f"Failed login attempt for {mobile}")
        return jsonify({"error": "unauthorized", "message": "Invalid credentials"}), 401

    try:
        user.last_login = local_now()
        db.session.commit()
    except SQLAlchemyError as e:
        # a missed last_login stamp should not block the login
        db.session.rollback()
        logger.error(f"Failed to update last_login for {user.id}: {e}")

    login_user(user)
    return jsonify({"message": "Login successful", "user": user.to_dict()}), 200


@bp.route("/logout", methods=["POST"])
@login_required
def logout():
    user_id = current_user.id
    logout_user()
    logger.info(f"User {user_id} logged out")
    return jsonify({"message": "Logged out"}), 200
