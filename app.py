import click
import structlog
from flask import Flask, current_app, jsonify
from flask_migrate import Migrate

from config import Config, engine_options
from errors import StorageFailure, ValidationError
from models import db
from routes import auth_bp, health_bp
from services.identity import IdentityDirectory
from services.otp import OtpLifecycleManager
from utils.clock import utcnow
from utils.emailer import send_otp_email
from utils.log import configure_logging

logger = structlog.get_logger(__name__)


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.config.setdefault(
        "SQLALCHEMY_ENGINE_OPTIONS",
        engine_options(app.config["SQLALCHEMY_DATABASE_URI"], app.config["STORAGE_TIMEOUT_SECONDS"]),
    )

    configure_logging(app)

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    # Collaborators the login flow looks up per request; tests swap these
    app.extensions["otp_sender"] = send_otp_email
    app.extensions["clock"] = utcnow

    @app.errorhandler(StorageFailure)
    def _storage_failure(exc):
        # operational alerting path: never answer as if auth succeeded or failed
        logger.error("storage.failure", error=str(exc), cause=repr(exc.__cause__))
        return jsonify(error="Service temporarily unavailable"), 503

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Cache-Control"] = "no-store"
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        return resp

    register_cli(app)

    return app

#-------------------------

def register_cli(app):
    @app.cli.command("create-user")
    @click.argument("email")
    @click.password_option()
    def create_user(email, password):
        """Register a login identity (bootstrap)."""
        identities = IdentityDirectory(db.session, bcrypt_rounds=current_app.config.get("BCRYPT_ROUNDS", 12))
        try:
            user = identities.create(email, password)
        except ValidationError as exc:
            raise click.ClickException(str(exc))
        click.echo(f"{user.email} created")

    @app.cli.command("reap-otps")
    @click.option("--grace-seconds", type=int, default=None,
                  help="Keep challenges that expired less than this long ago.")
    def reap_otps(grace_seconds):
        """Delete expired and consumed OTP challenges."""
        if grace_seconds is None:
            grace_seconds = current_app.config.get("OTP_REAP_GRACE_SECONDS", 3600)
        manager = OtpLifecycleManager(
            db.session,
            current_app.config["SECRET_KEY"],
            IdentityDirectory(db.session),
            clock=current_app.extensions.get("clock", utcnow),
        )
        deleted = manager.reap_expired(grace_seconds=grace_seconds)
        click.echo(f"Deleted {deleted} OTP challenges")

#-------------------------


if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)
