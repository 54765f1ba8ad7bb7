"""
Field-level encryption for personal data stored in the relational database.

Names, emails and phone numbers are written as Fernet tokens (AES-CBC with an
HMAC and a random IV), so encrypting the same value twice yields different
ciphertexts. Equality lookups on emails go through ``blind_index`` instead.

Usage:
    from petpocket.core.cipher import get_field_cipher

    cipher = get_field_cipher()
    token = cipher.encrypt("jane@example.com")
    cipher.decrypt(token)  # "jane@example.com"
"""

import base64
import hashlib
import hmac
import logging
from functools import lru_cache
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from petpocket.core.config import get_encryption_key

logger = logging.getLogger(__name__)


def _derive(secret: str, label: bytes) -> bytes:
    return HKDF(
        algorithm=hashes.SHA256(),
        length=32,
        salt=None,
        info=label,
    ).derive(secret.encode("utf-8"))


def normalize_email(value: Optional[str]) -> str:
    return (value or "").strip().lower()


class FieldCipher:
    """Reversible encryption of short text fields.

    ``encrypt``/``decrypt`` pass ``None`` and ``""`` through untouched.
    ``decrypt`` never raises: a value that is not a token produced with this
    key is returned as-is, which keeps rows written before encryption was
    enabled readable.
    """

    def __init__(self, secret: str):
        if not secret:
            raise ValueError("Encryption secret is required")
        self._fernet = Fernet(base64.urlsafe_b64encode(_derive(secret, b"field-cipher")))
        self._index_key = _derive(secret, b"blind-index")

    def encrypt(self, plaintext: Optional[str]) -> Optional[str]:
        if plaintext is None or plaintext == "":
            return plaintext
        return self._fernet.encrypt(str(plaintext).encode("utf-8")).decode("ascii")

    def decrypt(self, ciphertext: Optional[str]) -> Optional[str]:
        if ciphertext is None or ciphertext == "":
            return ciphertext
        try:
            return self._fernet.decrypt(ciphertext.encode("ascii")).decode("utf-8")
        except (InvalidToken, UnicodeError, ValueError, TypeError):
            logger.warning(
                "Field decryption failed; returning stored value",
                extra={"context": {"length": len(str(ciphertext))}},
            )
            return ciphertext

    def blind_index(self, value: Optional[str]) -> Optional[str]:
        """Keyed, deterministic digest of a normalized email for equality lookups."""
        normalized = normalize_email(value)
        if not normalized:
            return None
        return hmac.new(
            self._index_key, normalized.encode("utf-8"), hashlib.sha256
        ).hexdigest()


@lru_cache(maxsize=1)
def get_field_cipher() -> FieldCipher:
    """Process-wide cipher built from ENCRYPTION_KEY."""
    return FieldCipher(get_encryption_key())
