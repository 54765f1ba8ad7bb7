import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from petpocket.core.cipher import FieldCipher
from petpocket.core.exceptions import NotFoundError
from petpocket.db.base import Pet
from petpocket.db.mongo import DocumentStore, now_utc
from petpocket.domain.entities import DEFAULT_HEALTH_STATUS, PageRequest, Principal
from petpocket.repositories.details_repo import PetMedicalHistoryRepository
from petpocket.repositories.owner_repo import OwnerRepository
from petpocket.repositories.pet_repo import PetRepository
from petpocket.services.composer import AggregateComposer
from petpocket.services.dual_write import DualWriteOrchestrator

logger = logging.getLogger(__name__)


class PetService:
    """Pets: relational row plus a pet_medical_history companion document."""

    def __init__(self, db_session: Session, store: DocumentStore, cipher: FieldCipher):
        self.db = db_session
        self.cipher = cipher
        self.pets = PetRepository(db_session)
        self.owners = OwnerRepository(db_session)
        self.history = PetMedicalHistoryRepository(store)
        self.writer = DualWriteOrchestrator(db_session, self.history)
        self.composer = AggregateComposer(cipher)

    def _get_or_404(self, pet_id: int) -> Pet:
        pet = self.pets.get_by_id(pet_id)
        if pet is None:
            raise NotFoundError("Pet", pet_id)
        return pet

    def _ensure_owner(self, owner_id: int) -> None:
        if not self.owners.exists(owner_id):
            raise NotFoundError("Owner", owner_id)

    def list_pets(
        self, page: PageRequest, owner_id: Optional[int] = None
    ) -> Tuple[List[Dict[str, Any]], Dict[str, int]]:
        rows, total = self.pets.list_page(page, owner_id=owner_id)
        items = [self.composer.compose_pet(row) for row in rows]
        return self.composer.filter_pets(items, page.search), page.pagination(total)

    def get_pet(self, pet_id: int) -> Dict[str, Any]:
        return self.composer.compose_pet(self._get_or_404(pet_id))

    def create_pet(self, data: Dict[str, Any], principal: Principal) -> Dict[str, Any]:
        owner_id = data.get("owner_id")
        if owner_id is not None:
            self._ensure_owner(owner_id)
        pet = Pet(
            encrypted_name=self.cipher.encrypt(data["name"]),
            breed=data.get("breed"),
            age=data.get("age"),
            owner_id=owner_id,
            health_status=data.get("health_status") or DEFAULT_HEALTH_STATUS,
        )
        pet, _ = self.writer.create(
            pet,
            lambda row: {"medicalHistory": [], "vaccinations": [], "allergies": []},
        )
        logger.info(
            "Pet created",
            extra={"context": {"pet_id": pet.id, "owner_id": pet.owner_id, "actor_id": principal.id}},
        )
        return self.composer.compose_pet(pet)

    def update_pet(self, pet_id: int, data: Dict[str, Any], principal: Principal) -> Dict[str, Any]:
        pet = self._get_or_404(pet_id)
        changes: Dict[str, Any] = {}
        if "owner_id" in data and data["owner_id"] != pet.owner_id:
            # None detaches the pet from its owner
            if data["owner_id"] is not None:
                self._ensure_owner(data["owner_id"])
            changes["owner_id"] = data["owner_id"]
        if "name" in data:
            changes["encrypted_name"] = self.cipher.encrypt(data["name"])
        for field_name in ("breed", "age", "health_status"):
            if field_name in data:
                changes[field_name] = data[field_name]

        self.writer.update(pet, changes, {})
        if "owner_id" in changes:
            # Reload the eager owner relationship for the response.
            self.db.refresh(pet)
        logger.info(
            "Pet updated",
            extra={"context": {"pet_id": pet_id, "actor_id": principal.id, "fields": sorted(data)}},
        )
        return self.composer.compose_pet(pet)

    def delete_pet(self, pet_id: int, principal: Principal) -> None:
        pet = self._get_or_404(pet_id)
        self.writer.delete(pet)
        logger.info(
            "Pet deleted",
            extra={"context": {"pet_id": pet_id, "actor_id": principal.id}},
        )

    # --- medical history --------------------------------------------------

    def get_medical_history(self, pet_id: int) -> Dict[str, Any]:
        pet = self._get_or_404(pet_id)
        return self.composer.compose_medical_history(pet, self.history.get(pet_id))

    def _append(self, pet_id: int, array_field: str, entry: Dict[str, Any],
                principal: Principal) -> Dict[str, Any]:
        pet = self._get_or_404(pet_id)
        document = self.history.push(pet_id, array_field, entry)
        logger.info(
            "Medical history entry added",
            extra={
                "context": {
                    "pet_id": pet_id,
                    "section": array_field,
                    "actor_id": principal.id,
                }
            },
        )
        return self.composer.compose_medical_history(pet, document)

    def add_medical_record(self, pet_id: int, data: Dict[str, Any],
                           principal: Principal) -> Dict[str, Any]:
        entry = {
            "date": data.get("date") or now_utc(),
            "diagnosis": data["diagnosis"],
            "treatment": data["treatment"],
            "observations": data.get("observations") or "",
            "veterinarianId": principal.id,
        }
        return self._append(pet_id, "medicalHistory", entry, principal)

    def add_vaccination(self, pet_id: int, data: Dict[str, Any],
                        principal: Principal) -> Dict[str, Any]:
        entry = {
            "name": data["name"],
            "date": data["date"],
            "nextDue": data.get("nextDue"),
            "veterinarianId": principal.id,
        }
        return self._append(pet_id, "vaccinations", entry, principal)

    def add_allergy(self, pet_id: int, data: Dict[str, Any],
                    principal: Principal) -> Dict[str, Any]:
        entry = {
            "allergen": data["allergen"],
            "severity": data["severity"],
            "notes": data.get("notes") or "",
        }
        return self._append(pet_id, "allergies", entry, principal)
