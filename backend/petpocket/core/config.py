"""
Centralized configuration module for application-wide settings.

Every setting is read from the environment (optionally populated from a
``.env`` file by ``python-dotenv`` in ``create_app``) through a small getter
function so tests can override values before the first call.
"""

import logging
import os

logger = logging.getLogger(__name__)

_TRUTHY = ("true", "1", "yes")


def is_production() -> bool:
    return os.getenv("FLASK_ENV", "development") == "production"


def is_testing() -> bool:
    return os.getenv("TESTING", "").lower().strip() in _TRUTHY


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(
            f"Invalid integer for {name}; using default",
            extra={"context": {"variable": name, "value": raw, "default": default}},
        )
        return default


# ===========================
# Relational Store Configuration
# ===========================


def get_database_url() -> str:
    """
    Get the relational database URL.

    Environment Variables:
        DATABASE_URL: SQLAlchemy URL (e.g. 'postgresql+psycopg2://...',
            'mysql+pymysql://...'). Default: local SQLite file for development.
    """
    return os.getenv("DATABASE_URL", "sqlite:///./petpocket.db")


def get_pool_settings() -> dict:
    """
    Get connection pool bounds for the relational engine.

    Environment Variables:
        DB_POOL_SIZE: Persistent connections kept in the pool. Default: 10
        DB_MAX_OVERFLOW: Extra connections allowed under burst. Default: 0
        DB_POOL_TIMEOUT: Seconds to wait when acquiring a connection. Default: 30
        DB_POOL_RECYCLE: Seconds before an idle connection is recycled. Default: 1800
    """
    return {
        "pool_size": _get_int("DB_POOL_SIZE", 10),
        "max_overflow": _get_int("DB_MAX_OVERFLOW", 0),
        "pool_timeout": _get_int("DB_POOL_TIMEOUT", 30),
        "pool_recycle": _get_int("DB_POOL_RECYCLE", 1800),
    }


def get_slow_query_threshold_ms() -> int:
    return _get_int("ALERT_QUERY_MS_THRESHOLD", 100)


# ===========================
# Document Store Configuration
# ===========================


def get_mongodb_uri() -> str:
    """
    Get the MongoDB connection string.

    Environment Variables:
        MONGODB_URI: Default 'mongodb://localhost:27017'
    """
    return os.getenv("MONGODB_URI", "mongodb://localhost:27017")


def get_mongodb_db_name() -> str:
    return os.getenv("MONGODB_DB", "petpocket")


def get_mongodb_timeout_ms() -> int:
    return _get_int("MONGODB_TIMEOUT_MS", 5000)


# ===========================
# Secrets
# ===========================

_DEV_ENCRYPTION_KEY = "dev-encryption-key-change-me"


def get_encryption_key() -> str:
    """
    Get the secret used to derive the field cipher and blind index keys.

    In production (FLASK_ENV=production) the development default and short
    keys are rejected.

    Raises:
        ValueError: If production deployment uses a weak or missing key
    """
    key = os.getenv("ENCRYPTION_KEY", _DEV_ENCRYPTION_KEY)
    if is_production() and (key == _DEV_ENCRYPTION_KEY or len(key) < 32):
        raise ValueError(
            "Production deployment requires strong ENCRYPTION_KEY (min 32 chars). "
            "Set ENCRYPTION_KEY environment variable."
        )
    return key


def get_jwt_expiration_hours() -> int:
    return _get_int("JWT_EXPIRATION_HOURS", 24)


def get_bcrypt_rounds() -> int:
    """
    Get the bcrypt cost factor.

    Environment Variables:
        BCRYPT_ROUNDS: Default 12. Tests lower it to 4 (the bcrypt minimum).
    """
    return max(4, _get_int("BCRYPT_ROUNDS", 12))


# ===========================
# Rate Limiting
# ===========================


def is_rate_limit_enabled() -> bool:
    return os.getenv("RATE_LIMIT_ENABLED", "1").lower().strip() in _TRUTHY


def get_limiter_storage_uri() -> str:
    return os.getenv("LIMITER_STORAGE_URI", "memory://")


# ===========================
# Pagination
# ===========================

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


def log_store_config():
    """
    Log the active store configuration.

    Should be called during application startup. Credentials embedded in
    URLs are masked.
    """
    from petpocket.db.session import mask_url_password

    logger.info(
        "Store configuration initialized",
        extra={
            "context": {
                "database_url": mask_url_password(get_database_url()),
                "mongodb_uri": mask_url_password(get_mongodb_uri()),
                "mongodb_db": get_mongodb_db_name(),
                "pool": get_pool_settings(),
            }
        },
    )
