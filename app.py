import os
import sys
import logging

import click
from flask import Flask, jsonify
from config import Config
from extensions import db, login_manager, init_extensions
from ledger.errors import LedgerError
from ledger.services import init_ledger, get_services
from logger import app_logger
from models import User
from utils import local_now


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    if not app.debug and not app.testing:
        app.config.update(
            SESSION_COOKIE_SECURE=True,
            SESSION_COOKIE_HTTPONLY=True,
            REMEMBER_COOKIE_SECURE=True,
            REMEMBER_COOKIE_HTTPONLY=True,
        )

    setup_logging(app)

    # ----------------------------------------------------------------------------------------------------------
    # SQLite file databases live in instance/
    # ----------------------------------------------------------------------------------------------------------
    if app.config["SQLALCHEMY_DATABASE_URI"].startswith("sqlite:///"):
        os.makedirs(app.instance_path, exist_ok=True)

    # ----------------------------------------------------------------------------------------------------------
    # Initialize extensions and ledger services
    # ----------------------------------------------------------------------------------------------------------
    init_extensions(app)
    init_ledger(app)

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, user_id)

    register_blueprints(app)
    register_error_handlers(app)
    register_commands(app)

    # ----------------------
    # Basic routes
    # ----------------------
    @app.route("/healthz")
    def healthz():
        return {"status": "ok", "timestamp": local_now().isoformat()}, 200

    return app


def setup_logging(app):
    """app.logger writes through the rotating "app" channel from logger.py."""
    if app.logger is not app_logger:
        app.logger.handlers = list(app_logger.handlers)
    app.logger.setLevel(logging.DEBUG if app.debug else logging.INFO)
    app.logger.propagate = False  # Prevent duplicate logs

    logging.getLogger('werkzeug').setLevel(logging.WARNING)


def register_blueprints(app):
    """Register all blueprints"""
    from blueprints.auth import bp as auth_bp
    from blueprints.plans import bp as plans_bp
    from blueprints.transactions import bp as transactions_bp
    from blueprints.admin import admin_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(plans_bp)
    app.register_blueprint(transactions_bp)
    app.register_blueprint(admin_bp)


def register_error_handlers(app):

    @app.errorhandler(LedgerError)
    def handle_ledger_error(error):
        if error.status_code >= 500:
            app.logger.error(f"{error.code}: {error.message}")
        return jsonify(error.to_dict()), error.status_code


def register_commands(app):

    @app.cli.command("settle-daily-income")
    @click.option("--at", "at", type=click.DateTime(), default=None,
                  help="Settle as if run at this local time (default: now).")
    def settle_daily_income(at):
        """Credit today's daily income for every active plan."""
        try:
            result = get_services().settlement.run(now=at)
        except LedgerError as e:
            click.echo(f"Daily income settlement failed: {e.message}", err=True)
            sys.exit(1)

        click.echo(
            f"{result.settlement_date}: processed={result.processed} "
            f"already_paid={result.already_paid} expired={result.expired} "
            f"errors={result.errors} payout={result.total_payout}"
        )
        sys.exit(0 if result.ok else 1)


# ----------------------
# Create app instance
# ----------------------
app = create_app()

# ----------------------
# Local development
# ----------------------
if __name__ == "__main__":
    port = int(os.environ.get("PORT", 5000))
    debug_mode = app.config.get("DEBUG", False)
    app.run(debug=debug_mode, host="0.0.0.0", port=port, use_reloader=debug_mode)
