import click
from flask import Flask, jsonify
from flask_migrate import Migrate
from werkzeug.exceptions import HTTPException

from config import Config
from models import db, unit_of_work
from models.user import User, Role
from routes import health_bp, auth_bp, two_factor_bp, sessions_bp, preferences_bp, profile_bp, admin_bp
from utils.auth_context import load_current_user
from utils.errors import ApiError


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(two_factor_bp)
    app.register_blueprint(sessions_bp)
    app.register_blueprint(preferences_bp)
    app.register_blueprint(profile_bp)
    app.register_blueprint(admin_bp)

    # Database init: the db handle lives as long as the app
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    # Identity first; login_required / admin_required on each view then authorize
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

    register_error_handlers(app)
    register_cli(app)

    return app


def register_error_handlers(app):
    @app.errorhandler(ApiError)
    def _api_error(exc):
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(Exception)
    def _unexpected(exc):
        if isinstance(exc, HTTPException):
            return exc
        app.logger.exception("Unhandled error")
        # no internal detail leaks to the client
        return jsonify(error="Internal server error"), 500

#-------------------------

def register_cli(app):
    @app.cli.command("make-admin")
    @click.argument("email")
    def make_admin(email):
        """Promote a user to ADMIN by email (bootstrap)."""
        user = User.query.filter_by(email=email.strip()).first()
        if not user:
            click.echo("User not found")
            return

        with unit_of_work():
            user.role = Role.ADMIN

        click.echo(f"{user.email} promoted to ADMIN")

#-------------------------


if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)
