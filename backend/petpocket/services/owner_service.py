import logging
from typing import Any, Dict, List, Tuple

from sqlalchemy.orm import Session

from petpocket.core.cipher import FieldCipher
from petpocket.core.exceptions import BusinessRuleError, NotFoundError
from petpocket.db.base import Owner
from petpocket.domain.entities import PageRequest, Principal
from petpocket.repositories.owner_repo import OwnerRepository
from petpocket.repositories.pet_repo import PetRepository
from petpocket.services.composer import AggregateComposer

logger = logging.getLogger(__name__)


class OwnerService:
    """Owners are relational-only; every contact field is stored encrypted."""

    def __init__(self, db_session: Session, cipher: FieldCipher):
        self.db = db_session
        self.cipher = cipher
        self.owners = OwnerRepository(db_session)
        self.pets = PetRepository(db_session)
        self.composer = AggregateComposer(cipher)

    def _get_or_404(self, owner_id: int) -> Owner:
        owner = self.owners.get_by_id(owner_id)
        if owner is None:
            raise NotFoundError("Owner", owner_id)
        return owner

    def _ensure_email_free(self, email: str, exclude_id: int = None) -> None:
        if self.owners.find_by_email(email, self.cipher, exclude_id=exclude_id):
            raise BusinessRuleError("Email already registered", code="EMAIL_EXISTS")

    def list_owners(self, page: PageRequest) -> Tuple[List[Dict[str, Any]], Dict[str, int]]:
        rows, total = self.owners.list_page(page)
        items = [self.composer.compose_owner(row) for row in rows]
        return self.composer.filter_owners(items, page.search), page.pagination(total)

    def get_owner(self, owner_id: int) -> Dict[str, Any]:
        return self.composer.compose_owner(self._get_or_404(owner_id))

    def create_owner(self, data: Dict[str, Any], principal: Principal) -> Dict[str, Any]:
        self._ensure_email_free(data["email"])
        owner = Owner(
            encrypted_name=self.cipher.encrypt(data["name"]),
            encrypted_email=self.cipher.encrypt(data["email"]),
            encrypted_phone=self.cipher.encrypt(data["phone"]),
            email_index=self.cipher.blind_index(data["email"]),
        )
        self.db.add(owner)
        self.db.commit()
        self.db.refresh(owner)
        logger.info(
            "Owner created",
            extra={"context": {"owner_id": owner.id, "actor_id": principal.id}},
        )
        return self.composer.compose_owner(owner)

    def update_owner(self, owner_id: int, data: Dict[str, Any],
                     principal: Principal) -> Dict[str, Any]:
        owner = self._get_or_404(owner_id)
        if "email" in data:
            self._ensure_email_free(data["email"], exclude_id=owner_id)
            owner.encrypted_email = self.cipher.encrypt(data["email"])
            owner.email_index = self.cipher.blind_index(data["email"])
        if "name" in data:
            owner.encrypted_name = self.cipher.encrypt(data["name"])
        if "phone" in data:
            owner.encrypted_phone = self.cipher.encrypt(data["phone"])
        self.db.commit()
        logger.info(
            "Owner updated",
            extra={
                "context": {
                    "owner_id": owner_id,
                    "actor_id": principal.id,
                    "fields": sorted(data),
                }
            },
        )
        return self.composer.compose_owner(owner)

    def delete_owner(self, owner_id: int, principal: Principal) -> None:
        owner = self._get_or_404(owner_id)
        pet_count = self.owners.count_pets(owner_id)
        if pet_count:
            raise BusinessRuleError(
                "Owner has registered pets and cannot be deleted",
                code="OWNER_HAS_PETS",
                details={"pets": pet_count},
            )
        self.db.delete(owner)
        self.db.commit()
        logger.info(
            "Owner deleted",
            extra={"context": {"owner_id": owner_id, "actor_id": principal.id}},
        )

    def list_owner_pets(self, owner_id: int) -> List[Dict[str, Any]]:
        self._get_or_404(owner_id)
        return [self.composer.compose_pet(pet) for pet in self.pets.list_by_owner(owner_id)]
