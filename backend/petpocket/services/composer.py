"""
Aggregate composition: join a relational row with its companion document and
decrypt protected fields for API responses.

This is the only place ciphertext is turned back into plaintext. A missing
companion document is not an error; the default shape is returned instead.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from petpocket.core.cipher import FieldCipher
from petpocket.db.base import Appointment, Order, Owner, Pet, User
from petpocket.db.mongo import serialize_document

ORDER_DETAIL_DEFAULTS = {"products": [], "notes": "", "discount": 0, "tax": 0}
APPOINTMENT_DETAIL_DEFAULTS = {
    "services": [],
    "notes": "",
    "diagnosis": "",
    "treatment": "",
    "followUp": {"required": False},
}
MEDICAL_HISTORY_DEFAULTS = {"medicalHistory": [], "vaccinations": [], "allergies": []}
USER_DETAIL_DEFAULTS = {
    "image": None,
    "preferences": {},
    "lastLogin": None,
    "activityLog": [],
}


def _iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def _money(value: Optional[Decimal]) -> float:
    return float(value or 0)


def _with_defaults(document: Optional[Dict[str, Any]], defaults: Dict[str, Any]) -> Dict[str, Any]:
    data = serialize_document(document) or {}
    merged = {}
    for key, default in defaults.items():
        value = data.get(key)
        if value is None:
            value = default.copy() if isinstance(default, (dict, list)) else default
        merged[key] = value
    return merged


def _contains(haystack: Optional[str], needle: str) -> bool:
    return bool(haystack) and needle in haystack.lower()


class AggregateComposer:
    def __init__(self, cipher: FieldCipher):
        self.cipher = cipher

    # --- owners ---------------------------------------------------------

    def owner_summary(self, owner: Optional[Owner],
                      include_phone: bool = False) -> Optional[Dict[str, Any]]:
        if owner is None:
            return None
        summary = {
            "id": owner.id,
            "name": self.cipher.decrypt(owner.encrypted_name),
            "email": self.cipher.decrypt(owner.encrypted_email),
        }
        if include_phone:
            summary["phone"] = self.cipher.decrypt(owner.encrypted_phone)
        return summary

    def compose_owner(self, owner: Owner) -> Dict[str, Any]:
        data = self.owner_summary(owner, include_phone=True)
        data["created_at"] = _iso(owner.created_at)
        return data

    # --- pets -----------------------------------------------------------

    def compose_pet(self, pet: Pet) -> Dict[str, Any]:
        return {
            "id": pet.id,
            "name": self.cipher.decrypt(pet.encrypted_name),
            "breed": pet.breed,
            "age": pet.age,
            "health_status": pet.health_status,
            "owner_id": pet.owner_id,
            "owner": self.owner_summary(pet.owner),
            "created_at": _iso(pet.created_at),
        }

    def compose_medical_history(self, pet: Pet,
                                document: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        return {
            "petId": pet.id,
            "petName": self.cipher.decrypt(pet.encrypted_name),
            **_with_defaults(document, MEDICAL_HISTORY_DEFAULTS),
        }

    # --- users ----------------------------------------------------------

    def compose_user(self, user: User, document: Optional[Dict[str, Any]] = None,
                     include_activity: bool = False) -> Dict[str, Any]:
        details = _with_defaults(document, USER_DETAIL_DEFAULTS)
        if not include_activity:
            details.pop("activityLog")
        return {
            "id": user.id,
            "name": self.cipher.decrypt(user.encrypted_name),
            "email": self.cipher.decrypt(user.encrypted_email),
            "role": user.role,
            "created_at": _iso(user.created_at),
            "updated_at": _iso(user.updated_at),
            **details,
        }

    # --- orders ---------------------------------------------------------

    def compose_order(self, order: Order, document: Optional[Dict[str, Any]] = None,
                      detailed: bool = False) -> Dict[str, Any]:
        data = {
            "id": order.id,
            "client_id": order.client_id,
            "client": self.owner_summary(order.client, include_phone=detailed),
            "total": _money(order.total),
            "payment_status": order.payment_status,
            "fulfillment_status": order.fulfillment_status,
            "order_date": _iso(order.order_date),
        }
        data.update(_with_defaults(document, ORDER_DETAIL_DEFAULTS))
        return data

    # --- appointments ---------------------------------------------------

    def compose_appointment(self, appointment: Appointment,
                            document: Optional[Dict[str, Any]] = None,
                            detailed: bool = False) -> Dict[str, Any]:
        pet = appointment.pet
        data = {
            "id": appointment.id,
            "client_id": appointment.client_id,
            "pet_id": appointment.pet_id,
            "client": self.owner_summary(appointment.client, include_phone=detailed),
            "pet": (
                {"id": pet.id, "name": self.cipher.decrypt(pet.encrypted_name), "breed": pet.breed}
                if pet is not None
                else None
            ),
            "appointment_date": _iso(appointment.appointment_date),
            "status": appointment.status,
            "total": _money(appointment.total),
            "payment_status": appointment.payment_status,
            "created_at": _iso(appointment.created_at),
        }
        details = _with_defaults(document, APPOINTMENT_DETAIL_DEFAULTS)
        if not detailed:
            for clinical in ("diagnosis", "treatment", "followUp"):
                details.pop(clinical)
        data.update(details)
        return data

    # --- search ---------------------------------------------------------

    @staticmethod
    def filter_owners(items: Iterable[Dict[str, Any]],
                      search: Optional[str]) -> List[Dict[str, Any]]:
        """Case-insensitive substring match over decrypted name, email and phone."""
        items = list(items)
        if not search:
            return items
        needle = search.lower()
        return [
            o for o in items
            if _contains(o.get("name"), needle)
            or _contains(o.get("email"), needle)
            or _contains(o.get("phone"), needle)
        ]

    @staticmethod
    def filter_pets(items: Iterable[Dict[str, Any]], search: Optional[str]) -> List[Dict[str, Any]]:
        items = list(items)
        if not search:
            return items
        needle = search.lower()
        return [
            p for p in items
            if _contains(p.get("name"), needle)
            or _contains(p.get("breed"), needle)
            or _contains((p.get("owner") or {}).get("name"), needle)
        ]

    @staticmethod
    def filter_users(items: Iterable[Dict[str, Any]],
                     search: Optional[str]) -> List[Dict[str, Any]]:
        items = list(items)
        if not search:
            return items
        needle = search.lower()
        return [
            u for u in items
            if _contains(u.get("name"), needle) or _contains(u.get("email"), needle)
        ]
