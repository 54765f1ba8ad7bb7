import logging
from typing import Any, Dict, List, Optional, Tuple

from pymongo.errors import PyMongoError
from sqlalchemy.orm import Session

from petpocket.core.cipher import FieldCipher
from petpocket.core.exceptions import BusinessRuleError, NotFoundError
from petpocket.core.security import hash_password
from petpocket.db.base import User
from petpocket.db.mongo import DocumentStore, now_utc
from petpocket.domain.entities import PageRequest, Principal, Role
from petpocket.repositories.details_repo import UserDetailsRepository
from petpocket.repositories.user_repo import UserRepository
from petpocket.services.composer import AggregateComposer
from petpocket.services.dual_write import DualWriteOrchestrator

logger = logging.getLogger(__name__)

ROW_FIELDS = ("name", "email", "role", "password")
DOCUMENT_FIELDS = ("image", "preferences")


class UserService:
    """Staff accounts: users row plus a user_details companion document."""

    def __init__(self, db_session: Session, store: DocumentStore, cipher: FieldCipher):
        self.db = db_session
        self.cipher = cipher
        self.users = UserRepository(db_session)
        self.details = UserDetailsRepository(store)
        self.writer = DualWriteOrchestrator(db_session, self.details)
        self.composer = AggregateComposer(cipher)

    def _get_or_404(self, user_id: int) -> User:
        user = self.users.get_by_id(user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    def ensure_email_free(self, email: str, exclude_id: Optional[int] = None) -> None:
        if self.users.find_by_email(email, self.cipher, exclude_id=exclude_id):
            raise BusinessRuleError("Email already registered", code="EMAIL_EXISTS")

    def record_activity(self, user_id: int, action: str, details: Dict[str, Any],
                        fields: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        """Append to the user's activity trail; a document store failure is only logged."""
        try:
            return self.details.record_activity(user_id, action, details, fields)
        except PyMongoError as e:
            logger.error(
                "Activity log write failed",
                extra={"context": {"user_id": user_id, "action": action, "error": str(e)}},
            )
            return None

    def list_users(self, page: PageRequest) -> Tuple[List[Dict[str, Any]], Dict[str, int]]:
        rows, total = self.users.list_page(page)
        documents = self.details.get_many(row.id for row in rows)
        items = [self.composer.compose_user(row, documents.get(row.id)) for row in rows]
        return self.composer.filter_users(items, page.search), page.pagination(total)

    def get_user(self, user_id: int) -> Dict[str, Any]:
        user = self._get_or_404(user_id)
        return self.composer.compose_user(user, self.details.get(user_id), include_activity=True)

    def create_user(self, data: Dict[str, Any], actor: Optional[Principal],
                    action: str = "created") -> Tuple[User, Dict[str, Any]]:
        """Insert a user and its details document.

        ``actor`` is ``None`` for self-registration.
        """
        self.ensure_email_free(data["email"])
        user = User(
            encrypted_name=self.cipher.encrypt(data["name"]),
            encrypted_email=self.cipher.encrypt(data["email"]),
            email_index=self.cipher.blind_index(data["email"]),
            password_hash=hash_password(data["password"]),
            role=data.get("role") or Role.RECEPTIONIST.value,
        )
        activity_details = {"createdBy": actor.id} if actor else {}
        user, document = self.writer.create(
            user,
            lambda row: {
                "image": None,
                "preferences": {},
                "activityLog": [
                    {"action": action, "timestamp": now_utc(), "details": activity_details}
                ],
            },
        )
        logger.info(
            "User created",
            extra={
                "context": {
                    "user_id": user.id,
                    "role": user.role,
                    "actor_id": actor.id if actor else user.id,
                }
            },
        )
        return user, self.composer.compose_user(user, document)

    def update_user(self, user_id: int, data: Dict[str, Any], actor: Principal) -> Dict[str, Any]:
        user = self._get_or_404(user_id)
        row_changes: Dict[str, Any] = {}
        if "email" in data:
            self.ensure_email_free(data["email"], exclude_id=user_id)
            row_changes["encrypted_email"] = self.cipher.encrypt(data["email"])
            row_changes["email_index"] = self.cipher.blind_index(data["email"])
        if "name" in data:
            row_changes["encrypted_name"] = self.cipher.encrypt(data["name"])
        if "role" in data:
            row_changes["role"] = data["role"]
        if "password" in data:
            row_changes["password_hash"] = hash_password(data["password"])
        document_changes = {k: data[k] for k in DOCUMENT_FIELDS if k in data}

        self.writer.update(user, row_changes, document_changes)
        changed = sorted(k for k in data if k in ROW_FIELDS + DOCUMENT_FIELDS)
        document = self.record_activity(
            user_id, "updated", {"updatedBy": actor.id, "fields": changed}
        ) or self.details.get(user_id)
        logger.info(
            "User updated",
            extra={"context": {"user_id": user_id, "actor_id": actor.id, "fields": changed}},
        )
        return self.composer.compose_user(user, document)

    def delete_user(self, user_id: int, actor: Principal) -> None:
        if user_id == actor.id:
            raise BusinessRuleError("You cannot delete your own account", code="CANNOT_DELETE_SELF")
        user = self._get_or_404(user_id)
        self.writer.delete(user)
        logger.info(
            "User deleted",
            extra={"context": {"user_id": user_id, "actor_id": actor.id}},
        )
