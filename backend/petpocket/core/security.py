import os
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any, Dict, Optional

import jwt
from passlib.context import CryptContext

from petpocket.core.config import get_bcrypt_rounds, get_jwt_expiration_hours, is_production


@lru_cache(maxsize=1)
def _pwd_context() -> CryptContext:
    return CryptContext(
        schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=get_bcrypt_rounds()
    )


def hash_password(password: str) -> str:
    """Hash a password using bcrypt.

    Args:
        password: Plain text password to hash

    Returns:
        Hashed password string
    """
    return _pwd_context().hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash.

    Malformed stored hashes count as a mismatch.
    """
    if not plain_password or not hashed_password:
        return False
    try:
        return _pwd_context().verify(plain_password, hashed_password)
    except (ValueError, TypeError):
        return False


# JWT configuration
def get_jwt_secret_key():
    """Get JWT secret key with production validation.

    In production (FLASK_ENV=production), this function validates that:
    - JWT_SECRET_KEY is set and not using weak defaults
    - Secret is at least 32 characters long

    Raises:
        ValueError: If production deployment uses weak or missing JWT secret

    Returns:
        JWT secret key from environment or development default
    """
    secret = os.getenv("JWT_SECRET_KEY", "dev-jwt-secret-change-me")

    if is_production():
        weak_secrets = ["dev-jwt-secret-change-me", "dev-secret-change-me", "secret123"]
        if secret in weak_secrets or len(secret) < 32:
            raise ValueError(
                "Production deployment requires strong JWT_SECRET_KEY (min 32 chars). "
                "Set JWT_SECRET_KEY environment variable."
            )

    return secret


JWT_ALGORITHM = "HS256"


def create_access_token(
    data: Dict[str, Any], expires_delta: Optional[timedelta] = None
) -> str:
    """Create a signed JWT carrying ``data`` plus an ``exp`` claim."""
    to_encode = data.copy()

    if expires_delta is None:
        expires_delta = timedelta(hours=get_jwt_expiration_hours())
    to_encode.update({"exp": datetime.now(timezone.utc) + expires_delta})

    return jwt.encode(to_encode, get_jwt_secret_key(), algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """Decode and validate a JWT access token.

    Returns:
        Decoded payload if valid, None if invalid or expired
    """
    try:
        return jwt.decode(token, get_jwt_secret_key(), algorithms=[JWT_ALGORITHM])
    except jwt.PyJWTError:
        return None


def create_user_token(user_id: int, email: str, role: str) -> str:
    """Create the access token returned by login and register."""
    token_data = {"sub": str(user_id), "email": email, "role": role, "type": "access"}
    return create_access_token(token_data)
