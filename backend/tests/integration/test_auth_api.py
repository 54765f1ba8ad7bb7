"""
Integration tests for login, registration and the bearer-token guards.
"""

import pytest

from petpocket.db.base import User
from petpocket.db.mongo import USER_DETAILS
from petpocket.domain.entities import Role


@pytest.mark.integration
@pytest.mark.api
class TestLogin:
    def test_login_returns_token_and_user(self, client, make_user):
        make_user(role=Role.VETERINARIAN, email="vet@clinic.test", name="Dr. Vet")

        response = client.post(
            "/api/auth/login", json={"email": "VET@clinic.test", "password": "secret123"}
        )

        assert response.status_code == 200
        body = response.get_json()
        assert body["success"] is True
        assert body["data"]["token"]
        assert body["data"]["user"]["email"] == "vet@clinic.test"
        assert body["data"]["user"]["name"] == "Dr. Vet"
        assert body["data"]["user"]["role"] == "Veterinarian"

    def test_login_records_activity(self, client, make_user, document_store):
        user = make_user(email="desk@clinic.test")

        client.post("/api/auth/login", json={"email": "desk@clinic.test", "password": "secret123"})

        details = document_store.collection(USER_DETAILS).find_one({"userId": user.id})
        assert details["lastLogin"] is not None
        assert details["activityLog"][-1]["action"] == "login"

    @pytest.mark.parametrize(
        "email,password",
        [("desk@clinic.test", "wrong-password"), ("nobody@clinic.test", "secret123")],
    )
    def test_bad_credentials(self, client, make_user, email, password):
        make_user(email="desk@clinic.test")

        response = client.post("/api/auth/login", json={"email": email, "password": password})

        assert response.status_code == 401
        assert response.get_json() == {
            "success": False,
            "error": "Invalid credentials",
            "code": "INVALID_CREDENTIALS",
        }

    def test_missing_fields_is_validation_error(self, client):
        response = client.post("/api/auth/login", json={"email": "x@clinic.test"})

        assert response.status_code == 400
        body = response.get_json()
        assert body["code"] == "VALIDATION_ERROR"
        assert "password" in body["details"]


@pytest.mark.integration
@pytest.mark.api
class TestRegister:
    def test_register_creates_receptionist_with_encrypted_row(self, client, db_session, cipher):
        response = client.post(
            "/api/auth/register",
            json={
                "name": "New Desk",
                "email": "new@clinic.test",
                "password": "secret123",
                "role": "Administrator",
            },
        )

        assert response.status_code == 201
        assert response.get_json()["data"]["user"]["role"] == "Receptionist"

        row = db_session.query(User).one()
        assert row.encrypted_email != "new@clinic.test"
        assert cipher.decrypt(row.encrypted_email) == "new@clinic.test"
        assert row.email_index == cipher.blind_index("new@clinic.test")

    def test_register_creates_details_document(self, client, document_store, db_session):
        client.post(
            "/api/auth/register",
            json={"name": "New Desk", "email": "new@clinic.test", "password": "secret123"},
        )

        user = db_session.query(User).one()
        details = document_store.collection(USER_DETAILS).find_one({"userId": user.id})
        assert details["activityLog"][0]["action"] == "register"

    def test_duplicate_email(self, client, make_user):
        make_user(email="taken@clinic.test")

        response = client.post(
            "/api/auth/register",
            json={"name": "Someone", "email": "Taken@clinic.test", "password": "secret123"},
        )

        assert response.status_code == 400
        assert response.get_json()["code"] == "EMAIL_EXISTS"


@pytest.mark.integration
@pytest.mark.security
class TestGuards:
    def test_missing_token(self, client):
        response = client.get("/api/owners")

        assert response.status_code == 401
        assert response.get_json()["code"] == "TOKEN_REQUIRED"

    def test_garbage_token(self, client):
        response = client.get("/api/owners", headers={"Authorization": "Bearer garbage"})

        assert response.status_code == 403
        assert response.get_json()["code"] == "INVALID_TOKEN"

    def test_wrong_scheme(self, client):
        response = client.get("/api/owners", headers={"Authorization": "Token abc"})

        assert response.status_code == 401

    def test_role_guard(self, client, receptionist_headers):
        response = client.get("/api/users", headers=receptionist_headers)

        assert response.status_code == 403
        assert response.get_json()["code"] == "INSUFFICIENT_PERMISSIONS"

    def test_echo_endpoint(self, client, vet_headers):
        response = client.get("/api/test", headers=vet_headers)

        assert response.status_code == 200
        assert response.get_json()["data"]["role"] == "Veterinarian"

    def test_unknown_route_uses_envelope(self, client):
        response = client.get("/api/does-not-exist")

        assert response.status_code == 404
        assert response.get_json()["code"] == "NOT_FOUND"

    def test_wrong_method_uses_envelope(self, client):
        response = client.delete("/api/auth/login")

        assert response.status_code == 405
        assert response.get_json()["code"] == "METHOD_NOT_ALLOWED"
