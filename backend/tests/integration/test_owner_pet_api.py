"""
Integration tests for owners, pets and pet medical history.
"""

from decimal import Decimal

import pytest

from petpocket.db.base import Order, Owner, Pet
from petpocket.db.mongo import PET_MEDICAL_HISTORY


@pytest.mark.integration
@pytest.mark.api
class TestOwners:
    def test_create_owner_stores_ciphertext(self, client, receptionist_headers, db_session, cipher):
        response = client.post(
            "/api/owners",
            json={"name": "Ana Souza", "email": "Ana@Example.com", "phone": "555-0100"},
            headers=receptionist_headers,
        )

        assert response.status_code == 201
        data = response.get_json()["data"]
        assert data["email"] == "ana@example.com"
        assert data["phone"] == "555-0100"

        row = db_session.query(Owner).one()
        assert row.encrypted_name != "Ana Souza"
        assert row.encrypted_phone != "555-0100"
        assert cipher.decrypt(row.encrypted_name) == "Ana Souza"

    def test_duplicate_owner_email(self, client, receptionist_headers, make_owner):
        make_owner(email="ana@example.com")

        response = client.post(
            "/api/owners",
            json={"name": "Other Ana", "email": "ANA@example.com", "phone": "555-0111"},
            headers=receptionist_headers,
        )

        assert response.status_code == 400
        assert response.get_json()["code"] == "EMAIL_EXISTS"

    def test_search_filters_page_but_total_is_unfiltered(self, client, receptionist_headers, make_owner):
        make_owner(name="Ana Souza", email="ana@example.com")
        make_owner(name="Bruno Lima", email="bruno@example.com")
        make_owner(name="Carla Dias", email="carla@example.com")

        response = client.get("/api/owners?search=souza&limit=10", headers=receptionist_headers)

        data = response.get_json()["data"]
        assert [o["name"] for o in data["items"]] == ["Ana Souza"]
        assert data["pagination"] == {"total": 3, "page": 1, "limit": 10, "totalPages": 1}

    def test_pagination(self, client, receptionist_headers, make_owner):
        for index in range(3):
            make_owner(name=f"Owner {index}", email=f"owner{index}@example.com")

        response = client.get("/api/owners?page=2&limit=2", headers=receptionist_headers)

        data = response.get_json()["data"]
        assert len(data["items"]) == 1
        assert data["pagination"] == {"total": 3, "page": 2, "limit": 2, "totalPages": 2}

    def test_limit_is_capped(self, client, receptionist_headers):
        response = client.get("/api/owners?limit=500", headers=receptionist_headers)

        assert response.get_json()["data"]["pagination"]["limit"] == 100

    def test_bad_page_is_validation_error(self, client, receptionist_headers):
        response = client.get("/api/owners?page=zero", headers=receptionist_headers)

        assert response.status_code == 400
        assert "page" in response.get_json()["details"]

    def test_update_owner(self, client, receptionist_headers, make_owner):
        owner = make_owner()

        response = client.put(
            f"/api/owners/{owner.id}", json={"phone": "555-0199"}, headers=receptionist_headers
        )

        assert response.status_code == 200
        assert response.get_json()["data"]["phone"] == "555-0199"
        assert response.get_json()["data"]["email"] == "ana@example.com"

    def test_owner_with_pets_cannot_be_deleted(self, client, receptionist_headers, make_owner, make_pet):
        owner = make_owner()
        make_pet(owner)

        response = client.delete(f"/api/owners/{owner.id}", headers=receptionist_headers)

        assert response.status_code == 400
        assert response.get_json()["code"] == "OWNER_HAS_PETS"
        assert client.get(f"/api/owners/{owner.id}", headers=receptionist_headers).status_code == 200

    def test_delete_owner_without_pets(self, client, receptionist_headers, make_owner):
        owner = make_owner()

        response = client.delete(f"/api/owners/{owner.id}", headers=receptionist_headers)

        assert response.status_code == 200
        get_response = client.get(f"/api/owners/{owner.id}", headers=receptionist_headers)
        assert get_response.status_code == 404
        assert get_response.get_json()["code"] == "OWNER_NOT_FOUND"

    def test_delete_owner_clears_order_client(self, client, receptionist_headers, make_owner, db_session):
        owner = make_owner()
        order = Order(client_id=owner.id, total=Decimal("12.00"), payment_status="Paid")
        db_session.add(order)
        db_session.commit()

        response = client.delete(f"/api/owners/{owner.id}", headers=receptionist_headers)

        assert response.status_code == 200
        data = client.get(f"/api/orders/{order.id}", headers=receptionist_headers).get_json()["data"]
        assert data["client_id"] is None
        assert data["client"] is None

    def test_owner_pets(self, client, receptionist_headers, make_owner, make_pet):
        owner = make_owner()
        make_pet(owner, name="Rex")
        make_pet(make_owner(name="Other", email="other@example.com"), name="Mia")

        response = client.get(f"/api/owners/{owner.id}/pets", headers=receptionist_headers)

        assert [p["name"] for p in response.get_json()["data"]] == ["Rex"]


@pytest.mark.integration
@pytest.mark.api
class TestPets:
    def test_create_pet_with_empty_history(self, client, receptionist_headers, make_owner, document_store):
        owner = make_owner()

        response = client.post(
            "/api/pets",
            json={"name": "Rex", "breed": "Labrador", "age": 3, "owner_id": owner.id},
            headers=receptionist_headers,
        )

        assert response.status_code == 201
        data = response.get_json()["data"]
        assert data["name"] == "Rex"
        assert data["health_status"] == "Healthy"
        assert data["owner"]["name"] == "Ana Souza"

        history = document_store.collection(PET_MEDICAL_HISTORY).find_one({"petId": data["id"]})
        assert history["medicalHistory"] == []

    def test_create_pet_for_missing_owner(self, client, receptionist_headers):
        response = client.post(
            "/api/pets", json={"name": "Rex", "owner_id": 999}, headers=receptionist_headers
        )

        assert response.status_code == 404
        assert response.get_json()["code"] == "OWNER_NOT_FOUND"

    def test_create_stray_pet(self, client, receptionist_headers, document_store):
        response = client.post("/api/pets", json={"name": "Stray"}, headers=receptionist_headers)

        assert response.status_code == 201
        data = response.get_json()["data"]
        assert data["owner_id"] is None
        assert data["owner"] is None
        assert document_store.collection(PET_MEDICAL_HISTORY).find_one({"petId": data["id"]}) is not None

    def test_list_pets_by_owner_and_search(self, client, receptionist_headers, make_owner, make_pet):
        ana = make_owner()
        bruno = make_owner(name="Bruno", email="bruno@example.com")
        make_pet(ana, name="Rex", breed="Labrador")
        make_pet(ana, name="Luna", breed="Poodle")
        make_pet(bruno, name="Thor", breed="Labrador")

        by_owner = client.get(f"/api/pets?owner_id={ana.id}", headers=receptionist_headers)
        by_breed = client.get("/api/pets?search=labrador", headers=receptionist_headers)

        assert sorted(p["name"] for p in by_owner.get_json()["data"]["items"]) == ["Luna", "Rex"]
        assert sorted(p["name"] for p in by_breed.get_json()["data"]["items"]) == ["Rex", "Thor"]

    def test_bad_owner_filter(self, client, receptionist_headers):
        response = client.get("/api/pets?owner_id=abc", headers=receptionist_headers)

        assert response.status_code == 400

    def test_move_pet_to_another_owner(self, client, receptionist_headers, make_owner, make_pet):
        pet = make_pet(make_owner())
        bruno = make_owner(name="Bruno", email="bruno@example.com")

        response = client.put(
            f"/api/pets/{pet.id}", json={"owner_id": bruno.id}, headers=receptionist_headers
        )

        assert response.status_code == 200
        assert response.get_json()["data"]["owner"]["name"] == "Bruno"

    def test_detach_pet_from_owner(self, client, receptionist_headers, make_owner, make_pet):
        pet = make_pet(make_owner())

        response = client.put(
            f"/api/pets/{pet.id}", json={"owner_id": None}, headers=receptionist_headers
        )

        assert response.status_code == 200
        data = response.get_json()["data"]
        assert data["owner_id"] is None
        assert data["owner"] is None

    def test_move_pet_to_missing_owner(self, client, receptionist_headers, make_owner, make_pet):
        pet = make_pet(make_owner())

        response = client.put(
            f"/api/pets/{pet.id}", json={"owner_id": 999}, headers=receptionist_headers
        )

        assert response.get_json()["code"] == "OWNER_NOT_FOUND"

    def test_delete_pet_removes_history(self, client, receptionist_headers, make_owner, make_pet,
                                        document_store, db_session):
        pet = make_pet(make_owner())
        document_store.collection(PET_MEDICAL_HISTORY).insert_one({"petId": pet.id})

        response = client.delete(f"/api/pets/{pet.id}", headers=receptionist_headers)

        assert response.status_code == 200
        assert document_store.collection(PET_MEDICAL_HISTORY).count_documents({}) == 0
        db_session.expire_all()
        assert db_session.query(Pet).count() == 0


@pytest.mark.integration
@pytest.mark.api
class TestMedicalHistory:
    def test_history_defaults_when_document_missing(self, client, receptionist_headers, make_owner, make_pet):
        pet = make_pet(make_owner())

        response = client.get(f"/api/pets/{pet.id}/medical-history", headers=receptionist_headers)

        assert response.status_code == 200
        data = response.get_json()["data"]
        assert data["petName"] == "Rex"
        assert data["medicalHistory"] == []
        assert data["vaccinations"] == []
        assert data["allergies"] == []

    def test_vet_adds_record_even_without_document(self, client, vet_headers, make_owner, make_pet):
        pet = make_pet(make_owner())

        response = client.post(
            f"/api/pets/{pet.id}/medical-history",
            json={"diagnosis": "Otitis", "treatment": "Drops"},
            headers=vet_headers,
        )

        assert response.status_code == 201
        records = response.get_json()["data"]["medicalHistory"]
        assert len(records) == 1
        assert records[0]["diagnosis"] == "Otitis"
        assert records[0]["observations"] == ""

    def test_vaccination_and_allergy(self, client, vet_headers, make_owner, make_pet):
        pet = make_pet(make_owner())

        client.post(
            f"/api/pets/{pet.id}/vaccinations",
            json={"name": "Rabies", "date": "2024-03-01"},
            headers=vet_headers,
        )
        response = client.post(
            f"/api/pets/{pet.id}/allergies",
            json={"allergen": "Chicken", "severity": "Moderate"},
            headers=vet_headers,
        )

        data = response.get_json()["data"]
        assert [v["name"] for v in data["vaccinations"]] == ["Rabies"]
        assert data["allergies"][0]["severity"] == "Moderate"

    def test_receptionist_cannot_add_clinical_entries(self, client, receptionist_headers, make_owner, make_pet):
        pet = make_pet(make_owner())

        response = client.post(
            f"/api/pets/{pet.id}/allergies",
            json={"allergen": "Chicken", "severity": "Mild"},
            headers=receptionist_headers,
        )

        assert response.status_code == 403

    def test_history_for_missing_pet(self, client, vet_headers):
        response = client.post(
            "/api/pets/999/medical-history",
            json={"diagnosis": "Otitis", "treatment": "Drops"},
            headers=vet_headers,
        )

        assert response.status_code == 404
        assert response.get_json()["code"] == "PET_NOT_FOUND"
