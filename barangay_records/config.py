"""
Configuration settings for the Barangay Records API.

This module defines different configuration classes for various environments
(development, testing, production).  The database URI is taken from
`DATABASE_URL` when set; otherwise it is assembled from the individual
`DB_HOST` / `DB_PORT` / `DB_USER` / `DB_PASSWORD` / `DB_NAME` variables.

Every default here is meant for local development only (notably the JWT
signing secret).  Override them through the environment or a `.env` file.
"""
import os

from dotenv import load_dotenv

# Class attributes below read os.environ at import time, so .env files
# (working directory first, then the package directory) load before them.
load_dotenv(os.path.join(os.getcwd(), ".env"), override=False)
load_dotenv(os.path.join(os.path.dirname(__file__), ".env"), override=False)


def _env_bool(name: str, default: str) -> bool:
    return os.environ.get(name, default).lower() in {"1", "true", "yes", "on"}


def _database_url() -> str:
    url = os.environ.get("DATABASE_URL")
    if url:
        return url
    user = os.environ.get("DB_USER", "postgres")
    password = os.environ.get("DB_PASSWORD", "postgres")
    host = os.environ.get("DB_HOST", "localhost")
    port = os.environ.get("DB_PORT", "5432")
    name = os.environ.get("DB_NAME", "barangay_records")
    return f"postgresql+psycopg2://{user}:{password}@{host}:{port}/{name}"


class Config:
    """Base configuration with default settings."""

    SECRET_KEY = os.environ.get("SECRET_KEY", "a-very-secret-key")
    SQLALCHEMY_DATABASE_URI = _database_url()
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # If true (default), the app will run `db.create_all()` on startup.
    # For real deployments, set AUTO_CREATE_DB=false and use Alembic:
    #   flask db upgrade
    AUTO_CREATE_DB = _env_bool("AUTO_CREATE_DB", "true")

    # Listen port for `python -m barangay_records.app`
    PORT = int(os.environ.get("PORT", 5000))
    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*")

    # Bearer tokens
    JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY", "dev_secret")
    JWT_ALGORITHM = os.environ.get("JWT_ALGORITHM", "HS256")
    JWT_EXPIRES_HOURS = int(os.environ.get("JWT_EXPIRES_HOURS", 8))
    DEFAULT_USER_ROLE = os.environ.get("DEFAULT_USER_ROLE", "Staff")
    # Comma-separated roles allowed to read the audit trail
    ADMIN_ROLES = os.environ.get("ADMIN_ROLES", "Admin")

    # Uploads (official signatures)
    UPLOAD_FOLDER = os.environ.get("UPLOAD_FOLDER", os.path.join(os.path.dirname(__file__), "static", "uploads"))
    MAX_CONTENT_LENGTH = int(os.environ.get("MAX_CONTENT_LENGTH", 5 * 1024 * 1024))  # 5MB

    # Certificate defaults used when no barangay profile has been saved yet
    DEFAULT_BARANGAY_NAME = os.environ.get("DEFAULT_BARANGAY_NAME", "Catmon")
    DEFAULT_MUNICIPALITY = os.environ.get("DEFAULT_MUNICIPALITY", "Malabon")
    DEFAULT_PROVINCE = os.environ.get("DEFAULT_PROVINCE", "Metro Manila")
    DEFAULT_PLACE_ISSUED = os.environ.get("DEFAULT_PLACE_ISSUED", "Barangay Hall")
    # Optional one-page PDF drawn underneath the first certificate page
    CERTIFICATE_LETTERHEAD_PDF = os.environ.get("CERTIFICATE_LETTERHEAD_PDF", "")

    # Ops / logging / backups
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    LOG_JSON = os.environ.get("LOG_JSON", "True") == "True"
    BACKUP_DIR = os.environ.get("BACKUP_DIR", os.path.join(os.getcwd(), "backups"))
    BACKUP_RETENTION_DAYS = int(os.environ.get("BACKUP_RETENTION_DAYS", 7))
    ERROR_REPORT_EMAIL = os.environ.get("ERROR_REPORT_EMAIL", "")

    SECURITY_HEADERS_ENABLED = os.environ.get("SECURITY_HEADERS_ENABLED", "True") == "True"

    # Flask-Mail settings, only used for error report emails.
    MAIL_SERVER = os.environ.get("MAIL_SERVER", None)
    MAIL_PORT = int(os.environ.get("MAIL_PORT", 587)) if os.environ.get("MAIL_PORT") else None
    MAIL_USE_TLS = os.environ.get("MAIL_USE_TLS", "True") == "True"
    MAIL_USE_SSL = os.environ.get("MAIL_USE_SSL", "False") == "True"
    MAIL_USERNAME = os.environ.get("MAIL_USERNAME", None)
    MAIL_PASSWORD = os.environ.get("MAIL_PASSWORD", None)
    MAIL_DEFAULT_SENDER = os.environ.get("MAIL_DEFAULT_SENDER", None)


class DevelopmentConfig(Config):
    """Configuration for development environment."""

    DEBUG = True


class ProductionConfig(Config):
    """Configuration for production environment."""

    DEBUG = False


class TestingConfig(Config):
    """Configuration for testing (uses an in-memory SQLite DB)."""

    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    MAIL_SUPPRESS_SEND = True
