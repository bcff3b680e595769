"""Application settings with environment-based simple classes."""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Final

from dotenv import load_dotenv

# Public selector env var (keep neutral name to avoid collisions)
ENV_VAR: Final[str] = "APP_ENV"  # 'development' | 'testing' | 'production'

TRANSPORT_HEADERS: Final[str] = "headers"
TRANSPORT_COOKIES: Final[str] = "cookies"

# Load .env in development (no-op when the file is missing)
load_dotenv()


def env_bool(name: str, default: bool = False) -> bool:
    """Parse a boolean flag from an environment variable.

    Parameters
    ----------
    name: str
        Environment variable to inspect.
    default: bool, optional
        Value returned when the variable is unset. Defaults to ``False``.

    Returns
    -------
    bool
        ``True`` if the value resembles ``{"1", "true", "yes", "y", "on"}``
        ignoring case; otherwise ``False`` or ``default`` when missing.
    """
    val = os.getenv(name)
    if val is None:
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "y", "on"}


def env_int(name: str, default: int) -> int:
    """Parse an integer from an environment variable, falling back to ``default``."""
    val = os.getenv(name)
    if val is None or not val.strip():
        return default
    return int(val)


class BaseConfig:
    """Base configuration shared across environments.

    Attributes
    ----------
    API_BASE_PREFIX: str
        Root path for registering API blueprints.
    JWT_SECRET_KEY: str
        Signing secret used by ``flask-jwt-extended`` for access tokens.
    JWT_ALGORITHM: str
        Signing algorithm (single algorithm, no per-token key material).
    ACCESS_TOKEN_TTL_SECONDS: int
        Access token lifetime.
    REFRESH_TOKEN_TTL_SECONDS: int
        Refresh token lifetime.
    TOKEN_TRANSPORT: str
        ``"headers"`` or ``"cookies"``; selects the transport strategy once.
    BLACKLIST_ENABLED: bool
        Consult the blacklist on every validated request.
    BLACKLIST_AFTER_REFRESH: bool
        Blacklist the access token presented at refresh time.
    INVALIDATE_ON_CREDENTIAL_CHANGE: bool
        Move the principal watermark when credentials change.
    REFRESH_ACCEPTS_EXPIRED_ACCESS: bool
        Let an expired (but otherwise valid) access token identify the
        principal at refresh time.
    TOKEN_STORE_BACKEND: str
        ``"memory"``, ``"redis"`` or ``"sqlalchemy"``.
    REDIS_URL: str | None
        Redis connection URL for the ``redis`` backend.
    STORE_TIMEOUT_SECONDS: float
        Socket timeout applied to store clients.
    COOKIE_SECURE / COOKIE_SAMESITE:
        Attributes of token cookies.
    SQLALCHEMY_DATABASE_URI: str
        Database connection string consumed by SQLAlchemy.
    LOG_LEVEL: str
        Root logging verbosity (``INFO`` by default).
    CORS_ORIGINS: str
        Comma-separated list of allowed origins for CORS.

    Notes
    -----
    Values are primarily sourced from environment variables, enabling
    configuration without code changes.
    """

    API_BASE_PREFIX = "/api"

    # Secrets / signing
    SECRET_KEY = os.getenv("SECRET_KEY", "CHANGE_ME")
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "CHANGE_ME_JWT")
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
    # iat/exp are supplied by the token service; nbf would only duplicate iat.
    JWT_ENCODE_NBF = False

    # Token lifecycle
    ACCESS_TOKEN_TTL_SECONDS = env_int("ACCESS_TOKEN_TTL_SECONDS", 86400)
    REFRESH_TOKEN_TTL_SECONDS = env_int("REFRESH_TOKEN_TTL_SECONDS", 604800)
    TOKEN_TRANSPORT = os.getenv("TOKEN_TRANSPORT", TRANSPORT_HEADERS).strip().lower()
    BLACKLIST_ENABLED = env_bool("BLACKLIST_ENABLED", False)
    BLACKLIST_AFTER_REFRESH = env_bool("BLACKLIST_AFTER_REFRESH", False)
    INVALIDATE_ON_CREDENTIAL_CHANGE = env_bool("INVALIDATE_ON_CREDENTIAL_CHANGE", False)
    REFRESH_ACCEPTS_EXPIRED_ACCESS = env_bool("REFRESH_ACCEPTS_EXPIRED_ACCESS", True)

    # Stores
    TOKEN_STORE_BACKEND = os.getenv("TOKEN_STORE_BACKEND", "memory").strip().lower()
    REDIS_URL = os.getenv("REDIS_URL")
    STORE_TIMEOUT_SECONDS = float(os.getenv("STORE_TIMEOUT_SECONDS", "2.0"))

    # Cookies
    COOKIE_SECURE = env_bool("COOKIE_SECURE", True)
    COOKIE_SAMESITE = os.getenv("COOKIE_SAMESITE", "Lax")

    # DB
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///./dev.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)

    # Flask & JSON
    JSON_SORT_KEYS = False
    PROPAGATE_EXCEPTIONS = False

    # Logging & CORS
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "")

    # Flask built-ins
    DEBUG = False
    TESTING = False


class DevelopmentConfig(BaseConfig):
    """Configuration tailored for local development.

    Notes
    -----
    Enables debug mode by default and allows cookies over plain HTTP.
    """

    DEBUG = env_bool("FLASK_DEBUG", True)
    COOKIE_SECURE = env_bool("COOKIE_SECURE", False)
    CORS_MAX_AGE = 600  # 10 minutes


class TestingConfig(BaseConfig):
    """Configuration for automated test runs.

    Notes
    -----
    - Forces ``TESTING`` mode and disables debug logs.
    - Uses in-memory token stores and an in-memory SQLite database.
    - Propagates exceptions so pytest can surface tracebacks directly.
    """

    TESTING = True
    DEBUG = False
    JWT_SECRET_KEY = "testing-secret-key-with-enough-bytes-for-hs256"
    TOKEN_STORE_BACKEND = "memory"
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")
    COOKIE_SECURE = False
    PROPAGATE_EXCEPTIONS = True


class ProductionConfig(BaseConfig):
    """Configuration defaults for production deployments.

    Notes
    -----
    Keeps debug disabled and relies on WSGI-level log configuration.
    """

    DEBUG = False
    SQLALCHEMY_ECHO = False
    PROPAGATE_EXCEPTIONS = False


# Map names -> classes (simple, explicit)
CONFIG_MAP: Mapping[str, type[BaseConfig]] = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
}


def get_config() -> type[BaseConfig]:
    """Return the configuration class inferred from ``APP_ENV``.

    Returns
    -------
    type[BaseConfig]
        Class to pass to :meth:`flask.Config.from_object`.

    Notes
    -----
    Falls back to :class:`DevelopmentConfig` when ``APP_ENV`` is unset or
    unknown.
    """
    name = os.getenv(ENV_VAR, "development").strip().lower()
    return CONFIG_MAP.get(name, DevelopmentConfig)
