"""
Unit tests for request validators.
"""

from datetime import timezone

import pytest

from petpocket.core.exceptions import ValidationError
from petpocket.core.validation import (
    AppointmentUpdateValidator,
    AppointmentValidator,
    OrderValidator,
    OwnerValidator,
    PetValidator,
    ProductValidator,
    ServiceValidator,
    StockUpdateValidator,
    UserValidator,
    VaccinationValidator,
    validate_or_raise,
)


@pytest.mark.unit
class TestValidateOrRaise:
    def test_non_object_body_is_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_or_raise(OwnerValidator(), None)

        assert exc_info.value.details == {"body": "Request body must be a JSON object"}

    def test_errors_are_reported_per_field(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_or_raise(OwnerValidator(), {"name": "A", "email": "nope"})

        details = exc_info.value.details
        assert exc_info.value.code == "VALIDATION_ERROR"
        assert set(details) == {"name", "email", "phone"}


@pytest.mark.unit
class TestOwnerAndUser:
    def test_owner_email_is_normalized(self):
        data = validate_or_raise(
            OwnerValidator(), {"name": "Ana", "email": " Ana@Example.COM ", "phone": "555-0100"}
        )

        assert data["email"] == "ana@example.com"

    def test_partial_owner_update_only_checks_sent_fields(self):
        data = validate_or_raise(OwnerValidator(partial=True), {"phone": "555 0199"})

        assert data == {"phone": "555 0199"}

    def test_user_password_minimum_length(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_or_raise(
                UserValidator(), {"name": "Staff", "email": "s@clinic.test", "password": "123"}
            )

        assert "password" in exc_info.value.details

    def test_unknown_role_is_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_or_raise(UserValidator(partial=True), {"role": "Groomer"})

        assert "role" in exc_info.value.details

    def test_role_ignored_when_not_allowed(self):
        data = validate_or_raise(
            UserValidator(allow_role=False),
            {"name": "Staff", "email": "s@clinic.test", "password": "secret1", "role": "Administrator"},
        )

        assert "role" not in data


@pytest.mark.unit
class TestPetsAndClinical:
    def test_pet_owner_is_optional(self):
        data = validate_or_raise(PetValidator(), {"name": "Stray"})

        assert "owner_id" not in data

    def test_pet_update_null_owner_detaches(self):
        data = validate_or_raise(PetValidator(partial=True), {"owner_id": None})

        assert data == {"owner_id": None}

    def test_pet_owner_must_be_positive(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_or_raise(PetValidator(), {"name": "Rex", "owner_id": 0})

        assert "owner_id" in exc_info.value.details

    def test_pet_age_bounds(self):
        with pytest.raises(ValidationError):
            validate_or_raise(PetValidator(), {"name": "Rex", "owner_id": 1, "age": -1})

    def test_vaccination_dates_become_utc(self):
        data = validate_or_raise(
            VaccinationValidator(), {"name": "Rabies", "date": "2024-03-01T10:00:00"}
        )

        assert data["date"].tzinfo == timezone.utc


@pytest.mark.unit
class TestCatalog:
    def test_product_price_and_stock(self):
        data = validate_or_raise(
            ProductValidator(),
            {"name": "Food", "category": "Food", "price": "10.50", "stock": 3},
        )

        assert data["price"] == 10.5
        assert data["stock"] == 3

    def test_negative_stock_is_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_or_raise(
                ProductValidator(), {"name": "Food", "category": "Food", "price": 1, "stock": -2}
            )

        assert "stock" in exc_info.value.details

    @pytest.mark.parametrize(
        "payload",
        [
            {"quantity": 0, "operation": "add"},
            {"quantity": 1, "operation": "set"},
            {"operation": "add"},
        ],
    )
    def test_stock_update_rejects_bad_input(self, payload):
        with pytest.raises(ValidationError):
            validate_or_raise(StockUpdateValidator(), payload)

    def test_service_subcategory_needs_price(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_or_raise(
                ServiceValidator(),
                {"name": "Bath", "description": "Bath", "subcategories": [{"name": "Small"}]},
            )

        assert "subcategories[0].price" in exc_info.value.details


@pytest.mark.unit
class TestOrdersAndAppointments:
    def test_order_requires_products(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_or_raise(OrderValidator(), {"client_id": 1, "products": []})

        assert "products" in exc_info.value.details

    def test_order_lines_are_cleaned(self):
        data = validate_or_raise(
            OrderValidator(), {"client_id": "3", "products": [{"productId": "abc", "quantity": "2"}]}
        )

        assert data == {"client_id": 3, "products": [{"productId": "abc", "quantity": 2}]}

    def test_order_client_is_optional(self):
        data = validate_or_raise(
            OrderValidator(), {"products": [{"productId": "abc", "quantity": 1}]}
        )

        assert "client_id" not in data

    def test_appointment_client_and_pet_are_optional(self):
        data = validate_or_raise(
            AppointmentValidator(),
            {"appointment_date": "2024-05-01T09:00:00", "services": [{"serviceId": "abc"}]},
        )

        assert "client_id" not in data
        assert "pet_id" not in data

    def test_appointment_update_rejects_unknown_status(self):
        with pytest.raises(ValidationError):
            validate_or_raise(AppointmentUpdateValidator(), {"status": "Rescheduled"})

    def test_appointment_follow_up_is_normalized(self):
        data = validate_or_raise(
            AppointmentUpdateValidator(), {"followUp": {"required": 1, "notes": "recheck"}}
        )

        assert data["followUp"] == {"required": True, "notes": "recheck"}
