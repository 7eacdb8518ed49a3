import logging

import click
from flask import Flask, jsonify
from flask_migrate import Migrate

from config import Config
from models import db
from models.user import User, Role
from routes import (
    health_bp, venues_bp, courts_bp, booking_bp, payments_bp, wallet_bp,
    webhook_bp, cron_bp, matches_bp, admin_bp,
)
from services.errors import BookingEngineError
from utils.auth_context import load_current_user
from utils.roles import ensure_default_roles

logger = logging.getLogger(__name__)


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(venues_bp)
    app.register_blueprint(courts_bp)
    app.register_blueprint(booking_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(wallet_bp)
    app.register_blueprint(webhook_bp)
    app.register_blueprint(cron_bp)
    app.register_blueprint(matches_bp)
    app.register_blueprint(admin_bp)

    db.init_app(app)
    Migrate(app, db)

    if app.config.get("SEED_DEFAULT_ROLES"):
        with app.app_context():
            ensure_default_roles()

    @app.errorhandler(BookingEngineError)
    def _engine_error(exc):
        if exc.status_code >= 500:
            logger.warning("%s: %s", type(exc).__name__, exc.message)
        return jsonify(error=exc.message), exc.status_code

    @app.before_request
    def _load_user():
        load_current_user()

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        return resp

    register_cli(app)

    return app


def register_cli(app):
    @app.cli.command("make-admin")
    @click.argument("email")
    def make_admin(email):
        """Promote a user to ADMIN by email."""
        user = User.query.filter_by(email=email.strip().lower()).first()
        if not user:
            click.echo("User not found")
            return

        admin_role = Role.query.filter_by(name="ADMIN").first()
        if not admin_role:
            admin_role = Role(name="ADMIN")
            db.session.add(admin_role)

        if admin_role not in user.roles:
            user.roles.append(admin_role)
        db.session.commit()

        click.echo(f"{user.email} promoted to ADMIN")

    @app.cli.command("rain-check")
    def rain_check():
        """Cancel outdoor bookings with rain in the forecast."""
        from services.sweeper import sweep

        processed = sweep()
        click.echo(f"processed_count={processed}")


if __name__ == "__main__":
    app = create_app()
    app.run(host="127.0.0.1", port=5002)
