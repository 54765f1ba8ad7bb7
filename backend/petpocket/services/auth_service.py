import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from petpocket.core.cipher import FieldCipher
from petpocket.core.exceptions import AuthenticationError
from petpocket.core.security import create_user_token, verify_password
from petpocket.db.mongo import DocumentStore, now_utc
from petpocket.domain.entities import Role
from petpocket.services.user_service import UserService

logger = logging.getLogger(__name__)


class AuthService:
    """Credential checks and token issuance for login and self-registration."""

    def __init__(self, db_session: Session, store: DocumentStore, cipher: FieldCipher):
        self.cipher = cipher
        self.users = UserService(db_session, store, cipher)

    def _session_payload(self, user, email: str) -> Dict[str, Any]:
        return {
            "token": create_user_token(user.id, email, user.role),
            "user": {
                "id": user.id,
                "name": self.cipher.decrypt(user.encrypted_name),
                "email": email,
                "role": user.role,
            },
        }

    def login(self, email: str, password: str, remote_addr: Optional[str] = None) -> Dict[str, Any]:
        user = self.users.users.find_by_email(email, self.cipher)
        if user is None or not verify_password(password, user.password_hash):
            logger.warning(
                "Login failed",
                extra={"context": {"remote_addr": remote_addr, "user_found": user is not None}},
            )
            raise AuthenticationError("Invalid credentials", code="INVALID_CREDENTIALS")

        self.users.record_activity(
            user.id, "login", {"ip": remote_addr}, fields={"lastLogin": now_utc()}
        )
        logger.info("User logged in", extra={"context": {"user_id": user.id}})
        return self._session_payload(user, self.cipher.decrypt(user.encrypted_email))

    def register(self, data: Dict[str, Any], remote_addr: Optional[str] = None) -> Dict[str, Any]:
        """Create a Receptionist account; elevated roles are granted by an Administrator."""
        payload = {**data, "role": Role.RECEPTIONIST.value}
        user, _ = self.users.create_user(payload, actor=None, action="register")
        logger.info(
            "User registered",
            extra={"context": {"user_id": user.id, "remote_addr": remote_addr}},
        )
        return self._session_payload(user, data["email"])
