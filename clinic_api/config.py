"""
Environment-aware configuration.
Security keys, token lifetimes, resilience policy and database URL all come from
the environment (.env is read if present).
"""
import os
from dotenv import load_dotenv
from datetime import timedelta

load_dotenv()  # Read .env if present

DEV_JWT_SECRET = "dev-secret-change-me-please-32bytes!"


def _env_bool(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes")


class BaseConfig:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")  # Set a strong key in production
    DEBUG = False
    TESTING = False
    # CORS: in dev we usually allow '*', in prod supply a comma-separated list in env
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")
    APP_ENV = os.getenv("APP_ENV", "dev")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///diet-clinic.db")
    SQL_ECHO = False

    # jwt configurations
    JWT_SECRET = os.getenv("JWT_SECRET", DEV_JWT_SECRET)
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
    JWT_ISSUER = os.getenv("JWT_ISSUER", "diet-clinic-api")
    ACCESS_TOKEN_EXPIRES = timedelta(seconds=int(os.getenv("ACCESS_TOKEN_EXPIRES_SECONDS", "900")))

    # refresh tokens
    REFRESH_TOKEN_EXPIRES = timedelta(seconds=int(os.getenv("REFRESH_TOKEN_EXPIRES_SECONDS", "86400")))
    REFRESH_TOKEN_ROTATION = _env_bool("REFRESH_TOKEN_ROTATION")
    REFRESH_TOKEN_SINGLE_SESSION = _env_bool("REFRESH_TOKEN_SINGLE_SESSION")

    DEFAULT_ROLES = os.getenv("DEFAULT_ROLES", "PATIENT").split(",")

    # retry + circuit breaker around resource reads
    RETRY_MAX_ATTEMPTS = int(os.getenv("RETRY_MAX_ATTEMPTS", "3"))
    RETRY_BACKOFF_SECONDS = float(os.getenv("RETRY_BACKOFF_SECONDS", "0.5"))
    CIRCUIT_FAILURE_THRESHOLD = int(os.getenv("CIRCUIT_FAILURE_THRESHOLD", "5"))
    CIRCUIT_WINDOW_SECONDS = float(os.getenv("CIRCUIT_WINDOW_SECONDS", "60"))
    CIRCUIT_COOLDOWN_SECONDS = float(os.getenv("CIRCUIT_COOLDOWN_SECONDS", "30"))


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    SQL_ECHO = _env_bool("SQL_ECHO")


class TestingConfig(BaseConfig):
    TESTING = True
    DATABASE_URL = "sqlite://"
    LOG_LEVEL = "DEBUG"
    JWT_SECRET = "test-secret-with-at-least-32-bytes-of-key"
    REFRESH_TOKEN_ROTATION = False
    REFRESH_TOKEN_SINGLE_SESSION = False
    RETRY_BACKOFF_SECONDS = 0.0


class ProductionConfig(BaseConfig):
    DEBUG = False


def get_config(name: str | None):
    """
    Select config class.
    - If name is provided, choose by name.
    - Else choose based on APP_ENV (dev/test/prod).
    """
    env = (name or os.getenv("APP_ENV", "dev")).lower()
    if env in ["prod", "production"]:
        return ProductionConfig
    if env in ["test", "testing"]:
        return TestingConfig
    return DevelopmentConfig
