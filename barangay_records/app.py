"""
Application entry point for the Barangay Records API.

This module creates the Flask application, loads configuration, initializes
extensions, and registers blueprints.  Running this module with
`python -m barangay_records.app` starts the development server on ``PORT``.
"""
import json
import logging
import os
import shutil
import subprocess
import time
import uuid
from datetime import datetime, timezone

import click
from flask import Flask, g, jsonify, request, send_from_directory
from flask_mail import Message
from flask_migrate import Migrate
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from .admin import admin_bp
from .auth import auth_bp
from .config import DevelopmentConfig
from .extensions import cors, db, mail
from .helpers import upload_root
from .routes import main_bp


def create_app(config_class=DevelopmentConfig):
    """
    Application factory.  Creates and configures the Flask app instance.

    Args:
        config_class: The configuration class to use (e.g., DevelopmentConfig or ProductionConfig).
    Returns:
        A configured Flask app instance.
    """
    app = Flask(__name__)
    app.config.from_object(config_class)

    # Logging configuration
    level_name = str(app.config.get("LOG_LEVEL", "INFO")).upper()
    log_level = getattr(logging, level_name, logging.INFO)
    app.logger.setLevel(log_level)

    # Initialize extensions
    db.init_app(app)
    Migrate(app, db)
    # Mail is only used for error report emails.
    mail.init_app(app)
    origins = [o.strip() for o in str(app.config.get("CORS_ORIGINS", "*")).split(",") if o.strip()] or "*"
    cors.init_app(
        app,
        resources={r"/api/*": {"origins": origins}, r"/uploads/*": {"origins": origins}},
        expose_headers=["Content-Disposition", "X-Request-ID"],
    )

    def _send_error_report(exc: Exception) -> None:
        report_to = str(app.config.get("ERROR_REPORT_EMAIL", "")).strip()
        if not report_to:
            return
        try:
            subject = f"[Barangay Records] Error {request.method} {request.path}"
            body = (
                "An unhandled exception occurred.\n\n"
                f"Time (UTC): {datetime.now(timezone.utc).isoformat()}\n"
                f"Request ID: {getattr(g, 'request_id', None)}\n"
                f"User ID: {getattr(g, 'user_id', None)}\n"
                f"Method: {request.method}\n"
                f"Path: {request.path}\n"
                f"IP: {request.remote_addr}\n"
                f"User-Agent: {request.user_agent.string if request.user_agent else ''}\n"
                f"Error: {exc}\n"
            )
            mail.send(Message(subject=subject, recipients=[report_to], body=body))
        except Exception:
            app.logger.exception("Failed to send error report email.")

    def _log_unhandled(exc: Exception) -> None:
        payload = {
            "event": "error",
            "request_id": getattr(g, "request_id", None),
            "path": request.path,
            "method": request.method,
            "error": str(exc),
        }
        if app.config.get("LOG_JSON", True):
            app.logger.exception(json.dumps(payload))
        else:
            app.logger.exception("Unhandled exception: %s", exc)
        _send_error_report(exc)

    # Every error leaves the API as {"message": ...}; clients show it verbatim.
    @app.errorhandler(HTTPException)
    def handle_http_error(e: HTTPException):
        return jsonify({"message": e.description}), e.code

    @app.errorhandler(SQLAlchemyError)
    def handle_db_error(e: SQLAlchemyError):
        db.session.rollback()
        _log_unhandled(e)
        return jsonify({"message": "Database error"}), 500

    @app.errorhandler(Exception)
    def handle_unexpected_error(e: Exception):
        db.session.rollback()
        _log_unhandled(e)
        return jsonify({"message": "Internal server error"}), 500

    @app.before_request
    def assign_request_id():
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        g.request_start = time.time()
        # Echo back for clients
        request.environ["request_id"] = g.request_id

    @app.after_request
    def log_request(response):
        duration_ms = None
        if hasattr(g, "request_start"):
            duration_ms = int((time.time() - g.request_start) * 1000)
        response.headers["X-Request-ID"] = getattr(g, "request_id", "")

        payload = {
            "event": "request",
            "request_id": getattr(g, "request_id", None),
            "method": request.method,
            "path": request.path,
            "status": response.status_code,
            "duration_ms": duration_ms,
            "user_id": getattr(g, "user_id", None),
        }
        if app.config.get("LOG_JSON", True):
            app.logger.info(json.dumps(payload))
        else:
            app.logger.info(
                "%s %s %s %sms user=%s",
                request.method,
                request.path,
                response.status_code,
                duration_ms,
                payload["user_id"],
            )
        return response

    @app.after_request
    def apply_security_headers(response):
        if app.config.get("SECURITY_HEADERS_ENABLED", True):
            response.headers["X-Content-Type-Options"] = "nosniff"
            response.headers["X-Frame-Options"] = "DENY"
            response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response

    # Register blueprints
    app.register_blueprint(auth_bp)
    app.register_blueprint(main_bp)
    app.register_blueprint(admin_bp)

    @app.get("/uploads/<path:filename>")
    def uploaded_file(filename: str):
        """Serve uploaded signature images."""
        return send_from_directory(upload_root(), filename)

    @app.get("/healthz")
    def healthz():
        """Basic health check with DB connectivity."""
        db_ok = True
        try:
            db.session.execute(text("SELECT 1"))
        except SQLAlchemyError:
            db.session.rollback()
            db_ok = False
        status = "ok" if db_ok else "degraded"
        code = 200 if db_ok else 503
        return jsonify({"status": status, "db": db_ok, "time": datetime.now(timezone.utc).isoformat()}), code

    # -----------------------------------------------------------------
    # Database initialization
    # -----------------------------------------------------------------
    # Prefer `flask db upgrade` (Alembic) for real deployments; for local
    # setups, tables are created on start-up when AUTO_CREATE_DB is on.
    with app.app_context():
        # Ensure all models are registered on metadata before create_all.
        from . import models  # noqa: F401

        # Validate DB connectivity early so failures are clear.
        try:
            db.engine.connect().close()
        except Exception as exc:
            app.logger.error(
                "Database connection failed. Check DATABASE_URL / .env. Error: %s",
                exc,
            )
            raise

        if app.config.get("AUTO_CREATE_DB", True):
            db.create_all()

    @app.cli.command("init-db")
    def init_db_command():
        """Create all tables."""
        with app.app_context():
            db.create_all()
        click.echo("Database initialized.")

    @app.cli.command("create-user")
    @click.option("--username", required=True)
    @click.option("--full-name", "full_name", required=True)
    @click.option("--role", default=None, help="Defaults to DEFAULT_USER_ROLE.")
    @click.password_option()
    def create_user_command(username: str, full_name: str, role: str | None, password: str):
        """Create a user account (e.g. the first Admin)."""
        from .models import User

        with app.app_context():
            if User.query.filter_by(username=username).first():
                raise click.ClickException("Username already taken.")
            user = User(
                username=username,
                full_name=full_name,
                role=role or app.config.get("DEFAULT_USER_ROLE", "Staff"),
            )
            user.set_password(password)
            db.session.add(user)
            db.session.commit()
            click.echo(f"Created user {user.username} ({user.role}).")

    @app.cli.command("backup-db")
    def backup_db_command():
        """Create a timestamped database backup (PostgreSQL or SQLite)."""
        backup_dir = app.config.get("BACKUP_DIR", os.path.join(os.getcwd(), "backups"))
        os.makedirs(backup_dir, exist_ok=True)
        ts = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
        url = app.config.get("SQLALCHEMY_DATABASE_URI") or ""

        if url.startswith("sqlite:///"):
            db_path = url.replace("sqlite:///", "", 1)
            if db_path == ":memory:":
                raise click.ClickException("Cannot back up an in-memory SQLite database.")
            dest = os.path.join(backup_dir, f"backup_{ts}.sqlite")
            shutil.copy2(db_path, dest)
            click.echo(f"SQLite backup created: {dest}")
        else:
            dest = os.path.join(backup_dir, f"backup_{ts}.dump")
            subprocess.run(["pg_dump", "-Fc", url, "-f", dest], check=True)
            click.echo(f"PostgreSQL backup created: {dest}")

        # Retention cleanup
        retention_days = int(app.config.get("BACKUP_RETENTION_DAYS", 7))
        if retention_days > 0:
            cutoff = time.time() - (retention_days * 86400)
            for name in os.listdir(backup_dir):
                path = os.path.join(backup_dir, name)
                if os.path.isfile(path) and os.path.getmtime(path) < cutoff:
                    os.remove(path)

    return app


if __name__ == "__main__":
    # Create an app using the default development configuration
    app = create_app()
    app.run(port=app.config.get("PORT", 5000))
