"""
Request payload validation for PetPocket controllers.

Validators collect every field error before failing so clients get the full
list in one ``VALIDATION_ERROR`` response. Update validators run with
``partial=True``: absent fields are skipped and only supplied keys end up in
``cleaned_data`` (merge-patch semantics).
"""

import logging
import re
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from petpocket.core.exceptions import ValidationError
from petpocket.domain.entities import (
    AllergySeverity,
    AppointmentPaymentStatus,
    AppointmentStatus,
    FulfillmentStatus,
    OrderPaymentStatus,
    Role,
    StockOperation,
    enum_values,
)

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PHONE_PATTERN = re.compile(r"^[0-9+()\-\s]{7,20}$")


class ValidationResult:
    """Container for validation results."""

    def __init__(self):
        self.errors: Dict[str, str] = {}
        self.is_valid: bool = True
        self.cleaned_data: Dict[str, Any] = {}

    def add_error(self, message: str, field: str):
        """Record the first error for ``field``."""
        self.errors.setdefault(field, message)
        self.is_valid = False
        logger.debug(f"Validation error: {field}: {message}")


class BaseValidator:
    """Base validator with common validation methods."""

    def __init__(self, partial: bool = False):
        self.partial = partial

    def validate(
        self, data: Dict[str, Any]
    ) -> ValidationResult:  # pragma: no cover - interface definition
        """Validate data for a specific entity type."""
        raise NotImplementedError("Subclasses must implement validate")

    def present(self, data: Dict[str, Any], field_name: str) -> bool:
        """Whether a field should be validated: always on create, if sent on update."""
        return not self.partial or field_name in data

    @staticmethod
    def validate_required_field(
        value: Any, field_name: str, result: ValidationResult
    ) -> bool:
        """Validate that a required field is present and not empty."""
        if (
            value is None
            or value == ""
            or (isinstance(value, str) and value.strip() == "")
        ):
            result.add_error(f"{field_name} is required", field_name)
            return False
        return True

    @staticmethod
    def validate_string(
        value: Any,
        field_name: str,
        result: ValidationResult,
        min_length: Optional[int] = None,
        max_length: Optional[int] = None,
        allowed_values: Optional[List[str]] = None,
    ) -> Optional[str]:
        """Validate string field."""
        if value is None:
            return None

        if not isinstance(value, str):
            result.add_error("Must be a string", field_name)
            return None

        value = value.strip()

        if min_length is not None and len(value) < min_length:
            result.add_error(f"Must have at least {min_length} characters", field_name)
            return None

        if max_length is not None and len(value) > max_length:
            result.add_error(f"Must have at most {max_length} characters", field_name)
            return None

        if allowed_values is not None and value not in allowed_values:
            result.add_error(
                f"Must be one of: {', '.join(allowed_values)}", field_name
            )
            return None

        return value

    @staticmethod
    def validate_email(value: Any, field_name: str, result: ValidationResult) -> Optional[str]:
        if value is None:
            return None
        if not isinstance(value, str) or not EMAIL_PATTERN.match(value.strip()):
            result.add_error("Invalid email address", field_name)
            return None
        return value.strip().lower()

    @staticmethod
    def validate_phone(value: Any, field_name: str, result: ValidationResult) -> Optional[str]:
        if value is None or value == "":
            return None
        if not isinstance(value, str) or not PHONE_PATTERN.match(value.strip()):
            result.add_error("Invalid phone number", field_name)
            return None
        return value.strip()

    @staticmethod
    def validate_integer(
        value: Any,
        field_name: str,
        result: ValidationResult,
        min_value: Optional[int] = None,
        max_value: Optional[int] = None,
    ) -> Optional[int]:
        """Validate and convert integer field."""
        if value is None or value == "":
            return None

        if isinstance(value, bool):
            result.add_error("Must be an integer", field_name)
            return None

        try:
            int_value = int(value)
        except (ValueError, TypeError):
            result.add_error("Must be an integer", field_name)
            return None

        if isinstance(value, float) and value != int_value:
            result.add_error("Must be an integer", field_name)
            return None

        if min_value is not None and int_value < min_value:
            result.add_error(f"Must be at least {min_value}", field_name)
            return None

        if max_value is not None and int_value > max_value:
            result.add_error(f"Must be at most {max_value}", field_name)
            return None

        return int_value

    @staticmethod
    def validate_decimal(
        value: Any,
        field_name: str,
        result: ValidationResult,
        min_value: Optional[Decimal] = None,
    ) -> Optional[Decimal]:
        """Validate and convert decimal field."""
        if value is None or value == "":
            return None

        if isinstance(value, bool):
            result.add_error("Must be a number", field_name)
            return None

        try:
            decimal_value = Decimal(str(value).strip())
        except (InvalidOperation, TypeError, ValueError):
            result.add_error("Must be a number", field_name)
            return None

        if not decimal_value.is_finite():
            result.add_error("Must be a number", field_name)
            return None

        if min_value is not None and decimal_value < min_value:
            result.add_error(f"Must be at least {min_value}", field_name)
            return None

        return decimal_value

    @staticmethod
    def validate_boolean(value: Any, field_name: str, result: ValidationResult) -> Optional[bool]:
        if value is None:
            return None
        if not isinstance(value, bool):
            result.add_error("Must be true or false", field_name)
            return None
        return value

    @staticmethod
    def validate_datetime(
        value: Any, field_name: str, result: ValidationResult
    ) -> Optional[datetime]:
        """Parse an ISO 8601 date or datetime; naive values are taken as UTC."""
        if value is None or value == "":
            return None

        if isinstance(value, datetime):
            parsed = value
        elif isinstance(value, str):
            try:
                parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
            except ValueError:
                result.add_error("Invalid date. Use ISO 8601", field_name)
                return None
        else:
            result.add_error("Invalid date. Use ISO 8601", field_name)
            return None

        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)

    @staticmethod
    def validate_date(value: Any, field_name: str, result: ValidationResult) -> Optional[date]:
        if value is None or value == "":
            return None
        if isinstance(value, date) and not isinstance(value, datetime):
            return value
        try:
            return datetime.strptime(str(value), "%Y-%m-%d").date()
        except ValueError:
            result.add_error("Invalid date. Use YYYY-MM-DD", field_name)
            return None

    @staticmethod
    def validate_object(value: Any, field_name: str, result: ValidationResult) -> Optional[dict]:
        if value is None:
            return None
        if not isinstance(value, dict):
            result.add_error("Must be an object", field_name)
            return None
        return value

    def _string_field(
        self,
        data: Dict[str, Any],
        field_name: str,
        result: ValidationResult,
        required: bool = True,
        **kwargs,
    ) -> None:
        if not self.present(data, field_name):
            return
        value = data.get(field_name)
        if required and not self.validate_required_field(value, field_name, result):
            return
        cleaned = self.validate_string(value, field_name, result, **kwargs)
        if cleaned is not None or (not required and field_name in data):
            result.cleaned_data[field_name] = cleaned


def validate_or_raise(validator: BaseValidator, data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Run ``validator`` and return cleaned data, raising ``ValidationError`` on failure."""
    if data is None or not isinstance(data, dict):
        raise ValidationError({"body": "Request body must be a JSON object"})
    result = validator.validate(data)
    if not result.is_valid:
        raise ValidationError(result.errors)
    return result.cleaned_data


# ===========================
# Auth and users
# ===========================


class LoginValidator(BaseValidator):
    def validate(self, data: Dict[str, Any]) -> ValidationResult:
        result = ValidationResult()
        if self.validate_required_field(data.get("email"), "email", result):
            email = self.validate_email(data.get("email"), "email", result)
            if email:
                result.cleaned_data["email"] = email
        if self.validate_required_field(data.get("password"), "password", result):
            result.cleaned_data["password"] = str(data["password"])
        return result


class UserValidator(BaseValidator):
    """Registration, admin create (``partial=False``) and admin update (``partial=True``)."""

    def __init__(self, partial: bool = False, allow_role: bool = True):
        super().__init__(partial)
        self.allow_role = allow_role

    def validate(self, data: Dict[str, Any]) -> ValidationResult:
        result = ValidationResult()

        self._string_field(data, "name", result, min_length=2, max_length=100)

        if self.present(data, "email"):
            if self.validate_required_field(data.get("email"), "email", result):
                email = self.validate_email(data.get("email"), "email", result)
                if email:
                    result.cleaned_data["email"] = email

        if self.present(data, "password"):
            password = data.get("password")
            if self.validate_required_field(password, "password", result):
                if not isinstance(password, str) or len(password) < 6:
                    result.add_error("Must have at least 6 characters", "password")
                else:
                    result.cleaned_data["password"] = password

        if self.allow_role and "role" in data:
            role = self.validate_string(
                data.get("role"), "role", result, allowed_values=enum_values(Role)
            )
            if role:
                result.cleaned_data["role"] = role

        if self.partial:
            if "image" in data:
                image = data.get("image")
                if image is not None and not isinstance(image, str):
                    result.add_error("Must be a string", "image")
                else:
                    result.cleaned_data["image"] = image
            if "preferences" in data:
                prefs = self.validate_object(data.get("preferences"), "preferences", result)
                if prefs is not None:
                    result.cleaned_data["preferences"] = prefs

        return result


# ===========================
# Owners and pets
# ===========================


class OwnerValidator(BaseValidator):
    def validate(self, data: Dict[str, Any]) -> ValidationResult:
        result = ValidationResult()

        self._string_field(data, "name", result, min_length=2, max_length=100)

        if self.present(data, "email"):
            if self.validate_required_field(data.get("email"), "email", result):
                email = self.validate_email(data.get("email"), "email", result)
                if email:
                    result.cleaned_data["email"] = email

        if self.present(data, "phone"):
            if self.validate_required_field(data.get("phone"), "phone", result):
                phone = self.validate_phone(data.get("phone"), "phone", result)
                if phone:
                    result.cleaned_data["phone"] = phone

        return result


class PetValidator(BaseValidator):
    def validate(self, data: Dict[str, Any]) -> ValidationResult:
        result = ValidationResult()

        self._string_field(data, "name", result, min_length=1, max_length=100)
        self._string_field(data, "breed", result, required=False, max_length=100)

        if "age" in data:
            age = self.validate_integer(data.get("age"), "age", result, min_value=0, max_value=100)
            if age is not None or data.get("age") is None:
                result.cleaned_data["age"] = age

        # owner_id is optional; an explicit null detaches the pet
        if "owner_id" in data:
            owner_id = self.validate_integer(data.get("owner_id"), "owner_id", result, min_value=1)
            if owner_id is not None or data.get("owner_id") in (None, ""):
                result.cleaned_data["owner_id"] = owner_id

        if "health_status" in data:
            status = self.validate_string(
                data.get("health_status"), "health_status", result, min_length=1, max_length=50
            )
            if status:
                result.cleaned_data["health_status"] = status

        return result


class MedicalRecordValidator(BaseValidator):
    def validate(self, data: Dict[str, Any]) -> ValidationResult:
        result = ValidationResult()
        self._string_field(data, "diagnosis", result, min_length=1, max_length=1000)
        self._string_field(data, "treatment", result, min_length=1, max_length=1000)
        self._string_field(data, "observations", result, required=False, max_length=2000)
        record_date = self.validate_datetime(data.get("date"), "date", result)
        if record_date:
            result.cleaned_data["date"] = record_date
        return result


class VaccinationValidator(BaseValidator):
    def validate(self, data: Dict[str, Any]) -> ValidationResult:
        result = ValidationResult()
        self._string_field(data, "name", result, min_length=1, max_length=100)
        if self.validate_required_field(data.get("date"), "date", result):
            applied = self.validate_datetime(data.get("date"), "date", result)
            if applied:
                result.cleaned_data["date"] = applied
        next_due = self.validate_datetime(data.get("nextDue"), "nextDue", result)
        if next_due:
            result.cleaned_data["nextDue"] = next_due
        return result


class AllergyValidator(BaseValidator):
    def validate(self, data: Dict[str, Any]) -> ValidationResult:
        result = ValidationResult()
        self._string_field(data, "allergen", result, min_length=1, max_length=100)
        self._string_field(
            data, "severity", result, allowed_values=enum_values(AllergySeverity)
        )
        self._string_field(data, "notes", result, required=False, max_length=1000)
        return result


# ===========================
# Catalog
# ===========================


class ProductValidator(BaseValidator):
    def validate(self, data: Dict[str, Any]) -> ValidationResult:
        result = ValidationResult()

        self._string_field(data, "name", result, min_length=1, max_length=200)
        self._string_field(data, "description", result, required=False, max_length=2000)
        self._string_field(data, "category", result, min_length=1, max_length=100)
        self._string_field(data, "image", result, required=False, max_length=500)

        if self.present(data, "price"):
            if self.validate_required_field(data.get("price"), "price", result):
                price = self.validate_decimal(data.get("price"), "price", result, min_value=Decimal("0"))
                if price is not None:
                    result.cleaned_data["price"] = float(price)

        if self.present(data, "stock"):
            if self.validate_required_field(data.get("stock"), "stock", result):
                stock = self.validate_integer(data.get("stock"), "stock", result, min_value=0)
                if stock is not None:
                    result.cleaned_data["stock"] = stock

        if "active" in data:
            active = self.validate_boolean(data.get("active"), "active", result)
            if active is not None:
                result.cleaned_data["active"] = active

        return result


class StockUpdateValidator(BaseValidator):
    def validate(self, data: Dict[str, Any]) -> ValidationResult:
        result = ValidationResult()
        if self.validate_required_field(data.get("quantity"), "quantity", result):
            quantity = self.validate_integer(data.get("quantity"), "quantity", result, min_value=1)
            if quantity is not None:
                result.cleaned_data["quantity"] = quantity
        self._string_field(
            data, "operation", result, allowed_values=enum_values(StockOperation)
        )
        return result


class ServiceValidator(BaseValidator):
    def validate(self, data: Dict[str, Any]) -> ValidationResult:
        result = ValidationResult()

        self._string_field(data, "name", result, min_length=1, max_length=200)
        self._string_field(data, "description", result, min_length=1, max_length=2000)
        self._string_field(data, "image", result, required=False, max_length=500)

        if self.present(data, "subcategories"):
            subcategories = data.get("subcategories", [])
            if not isinstance(subcategories, list):
                result.add_error("Must be a list", "subcategories")
            else:
                cleaned = []
                for index, sub in enumerate(subcategories):
                    prefix = f"subcategories[{index}]"
                    if not isinstance(sub, dict):
                        result.add_error("Must be an object", prefix)
                        continue
                    name = sub.get("name")
                    if not self.validate_required_field(name, f"{prefix}.name", result):
                        continue
                    price = self.validate_decimal(
                        sub.get("price"), f"{prefix}.price", result, min_value=Decimal("0")
                    )
                    if price is None:
                        if sub.get("price") is None:
                            result.add_error("price is required", f"{prefix}.price")
                        continue
                    entry = {"name": str(name).strip(), "price": float(price)}
                    if sub.get("id"):
                        entry["id"] = str(sub["id"])
                    cleaned.append(entry)
                result.cleaned_data["subcategories"] = cleaned

        if "active" in data:
            active = self.validate_boolean(data.get("active"), "active", result)
            if active is not None:
                result.cleaned_data["active"] = active

        return result


# ===========================
# Orders and appointments
# ===========================


class OrderValidator(BaseValidator):
    def validate(self, data: Dict[str, Any]) -> ValidationResult:
        result = ValidationResult()

        client_id = self.validate_integer(data.get("client_id"), "client_id", result, min_value=1)
        if client_id is not None:
            result.cleaned_data["client_id"] = client_id

        products = data.get("products")
        if not isinstance(products, list) or not products:
            result.add_error("At least one product is required", "products")
        else:
            lines = []
            for index, item in enumerate(products):
                prefix = f"products[{index}]"
                if not isinstance(item, dict):
                    result.add_error("Must be an object", prefix)
                    continue
                product_id = item.get("productId")
                if not self.validate_required_field(product_id, f"{prefix}.productId", result):
                    continue
                quantity = self.validate_integer(
                    item.get("quantity"), f"{prefix}.quantity", result, min_value=1
                )
                if quantity is None:
                    if item.get("quantity") is None:
                        result.add_error("quantity is required", f"{prefix}.quantity")
                    continue
                lines.append({"productId": str(product_id), "quantity": quantity})
            result.cleaned_data["products"] = lines

        if "payment_status" in data:
            status = self.validate_string(
                data.get("payment_status"), "payment_status", result,
                allowed_values=enum_values(OrderPaymentStatus),
            )
            if status:
                result.cleaned_data["payment_status"] = status

        if "notes" in data:
            notes = self.validate_string(data.get("notes"), "notes", result, max_length=2000)
            result.cleaned_data["notes"] = notes or ""

        return result


class OrderUpdateValidator(BaseValidator):
    def __init__(self):
        super().__init__(partial=True)

    def validate(self, data: Dict[str, Any]) -> ValidationResult:
        result = ValidationResult()

        if "payment_status" in data:
            status = self.validate_string(
                data.get("payment_status"), "payment_status", result,
                allowed_values=enum_values(OrderPaymentStatus),
            )
            if status:
                result.cleaned_data["payment_status"] = status

        if "fulfillment_status" in data:
            status = self.validate_string(
                data.get("fulfillment_status"), "fulfillment_status", result,
                allowed_values=enum_values(FulfillmentStatus),
            )
            if status:
                result.cleaned_data["fulfillment_status"] = status

        if "notes" in data:
            notes = self.validate_string(data.get("notes"), "notes", result, max_length=2000)
            result.cleaned_data["notes"] = notes or ""

        for field_name in ("discount", "tax"):
            if field_name in data:
                amount = self.validate_decimal(
                    data.get(field_name), field_name, result, min_value=Decimal("0")
                )
                if amount is not None:
                    result.cleaned_data[field_name] = float(amount)

        return result


class AppointmentValidator(BaseValidator):
    def validate(self, data: Dict[str, Any]) -> ValidationResult:
        result = ValidationResult()

        for field_name in ("client_id", "pet_id"):
            value = self.validate_integer(data.get(field_name), field_name, result, min_value=1)
            if value is not None:
                result.cleaned_data[field_name] = value

        if self.validate_required_field(data.get("appointment_date"), "appointment_date", result):
            when = self.validate_datetime(data.get("appointment_date"), "appointment_date", result)
            if when:
                result.cleaned_data["appointment_date"] = when

        services = data.get("services")
        if not isinstance(services, list) or not services:
            result.add_error("At least one service is required", "services")
        else:
            lines = []
            for index, item in enumerate(services):
                prefix = f"services[{index}]"
                if not isinstance(item, dict):
                    result.add_error("Must be an object", prefix)
                    continue
                service_id = item.get("serviceId")
                if not self.validate_required_field(service_id, f"{prefix}.serviceId", result):
                    continue
                line = {"serviceId": str(service_id)}
                if item.get("subcategoryId"):
                    line["subcategoryId"] = str(item["subcategoryId"])
                lines.append(line)
            result.cleaned_data["services"] = lines

        if "payment_status" in data:
            status = self.validate_string(
                data.get("payment_status"), "payment_status", result,
                allowed_values=enum_values(AppointmentPaymentStatus),
            )
            if status:
                result.cleaned_data["payment_status"] = status

        if "notes" in data:
            notes = self.validate_string(data.get("notes"), "notes", result, max_length=2000)
            result.cleaned_data["notes"] = notes or ""

        return result


class AppointmentUpdateValidator(BaseValidator):
    def __init__(self):
        super().__init__(partial=True)

    def validate(self, data: Dict[str, Any]) -> ValidationResult:
        result = ValidationResult()

        if "appointment_date" in data:
            when = self.validate_datetime(data.get("appointment_date"), "appointment_date", result)
            if when:
                result.cleaned_data["appointment_date"] = when
            elif data.get("appointment_date") in (None, ""):
                result.add_error("appointment_date cannot be empty", "appointment_date")

        if "status" in data:
            status = self.validate_string(
                data.get("status"), "status", result,
                allowed_values=enum_values(AppointmentStatus),
            )
            if status:
                result.cleaned_data["status"] = status

        if "payment_status" in data:
            status = self.validate_string(
                data.get("payment_status"), "payment_status", result,
                allowed_values=enum_values(AppointmentPaymentStatus),
            )
            if status:
                result.cleaned_data["payment_status"] = status

        for field_name in ("notes", "diagnosis", "treatment"):
            if field_name in data:
                text = self.validate_string(data.get(field_name), field_name, result, max_length=2000)
                result.cleaned_data[field_name] = text or ""

        if "followUp" in data:
            follow_up = self.validate_object(data.get("followUp"), "followUp", result)
            if follow_up is not None:
                cleaned: Dict[str, Any] = {"required": bool(follow_up.get("required", False))}
                if follow_up.get("date"):
                    follow_date = self.validate_datetime(follow_up["date"], "followUp.date", result)
                    if follow_date:
                        cleaned["date"] = follow_date
                if follow_up.get("notes") is not None:
                    cleaned["notes"] = str(follow_up["notes"])
                result.cleaned_data["followUp"] = cleaned

        return result
