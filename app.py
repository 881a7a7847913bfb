import atexit

import click
from flask import Flask, jsonify
from werkzeug.exceptions import BadRequest

from config import Config
from extensions import db, limiter, migrate
from models import Instructor
from routes.attendance_routes import attendance_bp
from routes.auth_routes import auth_bp
from routes.dashboard_routes import dashboard_bp
from routes.fee_routes import fee_bp
from routes.student_routes import student_bp
from utils.security import hash_password
from utils.session_context import init_contexts
from utils.store import StoreError, change_feed
from utils.timezone_helpers import center_zone


def create_app(overrides=None):
    app = Flask(__name__)

    # Load configuration from Config, then any explicit overrides (tests, scripts)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)

    if app.config.get("AUTO_CREATE_TABLES", True):
        with app.app_context():
            db.create_all()

    with app.app_context():
        center_zone(app.config.get("CENTER_TIMEZONE"))

    change_feed.install()
    registry = init_contexts(app)
    atexit.register(registry.close_all)

    app.register_blueprint(auth_bp)
    app.register_blueprint(student_bp)
    app.register_blueprint(fee_bp)
    app.register_blueprint(attendance_bp)
    app.register_blueprint(dashboard_bp)

    _register_error_handlers(app)
    _register_commands(app)
    return app


def _register_error_handlers(app):
    @app.errorhandler(StoreError)
    def _store_error(exc):
        if exc.status_code >= 500:
            app.logger.warning("Store error: %s", exc)
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(TimeoutError)
    def _reconcile_timeout(exc):
        app.logger.warning("Dashboard did not refresh within %ss", app.config.get("RECONCILE_TIMEOUT_SECONDS"))
        return jsonify({"ok": False, "error": "Dashboard is still refreshing, try again"}), 504

    @app.errorhandler(BadRequest)
    def _bad_request(exc):
        return jsonify({"ok": False, "error": exc.description}), 400


def _register_commands(app):
    @app.cli.command("create-instructor")
    @click.argument("email")
    @click.argument("password")
    @click.option("--name", default=None, help="Display name (defaults to the email).")
    @click.option("--center", default=None, help="Center name used in fee reminders.")
    def create_instructor(email, password, name, center):
        """Create an instructor account that can sign in."""
        email = email.strip().lower()
        instructor = Instructor(
            email=email,
            display_name=name or email,
            center_name=center or app.config.get("CENTER_NAME"),
            password_hash=hash_password(password),
        )
        db.session.add(instructor)
        db.session.commit()
        click.echo(f"Created instructor {instructor.id} <{email}>")


if __name__ == "__main__":
    create_app().run(debug=False)
