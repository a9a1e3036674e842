"""
Application configuration for Haven Hotel.

Values come from environment variables; a local .env file is loaded first.
"""
import os

from dotenv import load_dotenv

load_dotenv()


def _env_flag(name, default):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def _database_url():
    database_url = os.environ.get("DATABASE_URL", "sqlite:///hotel.db")

    # Fix for Heroku/Render postgres:// URLs (should be postgresql://)
    if database_url.startswith("postgres://"):
        database_url = database_url.replace("postgres://", "postgresql://", 1)
    return database_url


def _engine_options(database_url):
    if database_url.startswith("postgresql"):
        return {
            "pool_recycle": 300,
            "pool_pre_ping": True,
        }
    return {}


class Config:
    SECRET_KEY = os.environ.get("SESSION_SECRET", "haven_hotel_secret_key")

    SQLALCHEMY_DATABASE_URI = _database_url()
    SQLALCHEMY_ENGINE_OPTIONS = _engine_options(SQLALCHEMY_DATABASE_URI)
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Session handles issued by the identity service
    JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY", SECRET_KEY)
    JWT_ALGORITHM = "HS256"
    JWT_EXPIRES_DAYS = int(os.environ.get("JWT_EXPIRES_DAYS", "7"))
    CONFIRMATION_EXPIRES_HOURS = int(os.environ.get("CONFIRMATION_EXPIRES_HOURS", "24"))

    # Server-held credential for privileged admin operations. Never shipped to a browser.
    SERVICE_ROLE_KEY = os.environ.get("SERVICE_ROLE_KEY")

    REQUIRE_EMAIL_CONFIRMATION = _env_flag("REQUIRE_EMAIL_CONFIRMATION", True)

    MAIL_SERVER = os.environ.get("MAIL_SERVER", "localhost")
    MAIL_PORT = int(os.environ.get("MAIL_PORT", "587"))
    MAIL_USE_TLS = _env_flag("MAIL_USE_TLS", True)
    MAIL_USERNAME = os.environ.get("MAIL_USERNAME")
    MAIL_PASSWORD = os.environ.get("MAIL_PASSWORD")
    MAIL_DEFAULT_SENDER = os.environ.get("MAIL_DEFAULT_SENDER", "no-reply@havenhotel.com")
    MAIL_SUPPRESS_SEND = _env_flag("MAIL_SUPPRESS_SEND", False)

    CORS_ORIGINS = [
        origin.strip()
        for origin in os.environ.get("CORS_ORIGINS", "http://localhost:5173").split(",")
        if origin.strip()
    ]

    HOTEL_NAME = os.environ.get("HOTEL_NAME", "Haven Hotel")
    HOTEL_TIMEZONE = os.environ.get("HOTEL_TIMEZONE", "Asia/Kolkata")
    CURRENCY_SYMBOL = os.environ.get("CURRENCY_SYMBOL", "₹")
    TAX_RATE = os.environ.get("TAX_RATE", "0.12")

    AUTO_CREATE_TABLES = _env_flag("AUTO_CREATE_TABLES", True)
    SEED_ROOMS = _env_flag("SEED_ROOMS", True)

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = "testing-secret"
    JWT_SECRET_KEY = "testing-jwt-secret-key-with-enough-bytes"
    SERVICE_ROLE_KEY = "testing-service-role-key"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    REQUIRE_EMAIL_CONFIRMATION = False
    MAIL_SUPPRESS_SEND = True
    SERVER_NAME = "localhost"
    AUTO_CREATE_TABLES = True
    SEED_ROOMS = True
    LOG_LEVEL = "DEBUG"
