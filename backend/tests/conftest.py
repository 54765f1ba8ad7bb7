"""
Central pytest configuration for the PetPocket backend tests.

The relational store runs on in-memory SQLite (one shared connection through
``StaticPool``) and is rebuilt before every test. The document store is a
``mongomock`` client injected into ``create_app``.
"""

import os

# Test environment (set before any petpocket import reads it)
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["TESTING"] = "true"
os.environ["FLASK_ENV"] = "testing"
os.environ["RATE_LIMIT_ENABLED"] = "0"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["LOG_TO_FILE"] = "0"
os.environ["JWT_SECRET_KEY"] = "test-jwt-secret"
os.environ["ENCRYPTION_KEY"] = "test-encryption-key-for-field-cipher"

import mongomock
import pytest

from petpocket.core.cipher import get_field_cipher
from petpocket.core.security import create_user_token, hash_password
from petpocket.db import base as models
from petpocket.db.mongo import DocumentStore
from petpocket.db.session import Base, SessionLocal, get_engine
from petpocket.domain.entities import Principal, Role
from petpocket.repositories.catalog_repo import ProductRepository, ServiceRepository

TEST_PASSWORD = "secret123"


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "api: mark test as API endpoint test")
    config.addinivalue_line("markers", "security: mark test as security-related")
    config.addinivalue_line("markers", "slow: mark test as slow running")


# =====================================================
# STORES
# =====================================================


@pytest.fixture(autouse=True)
def relational_store():
    """Fresh schema for every test."""
    engine = get_engine()
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield engine


@pytest.fixture
def db_session(relational_store):
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def document_store():
    store = DocumentStore(mongomock.MongoClient(tz_aware=True), "petpocket_test")
    store.ensure_indexes()
    return store


@pytest.fixture
def cipher():
    return get_field_cipher()


# =====================================================
# FLASK APPLICATION
# =====================================================


@pytest.fixture
def app(document_store):
    from petpocket.main import create_app

    app = create_app(document_store=document_store)
    app.config.update({"TESTING": True})
    return app


@pytest.fixture
def client(app):
    with app.test_client() as client:
        yield client


# =====================================================
# DATA BUILDERS
# =====================================================


@pytest.fixture
def make_user(db_session, cipher):
    def _make(role=Role.RECEPTIONIST, email=None, name="Staff Member", password=TEST_PASSWORD):
        role_value = getattr(role, "value", role)
        email = email or f"{role_value.lower()}@clinic.test"
        user = models.User(
            encrypted_name=cipher.encrypt(name),
            encrypted_email=cipher.encrypt(email),
            email_index=cipher.blind_index(email),
            password_hash=hash_password(password),
            role=role_value,
        )
        db_session.add(user)
        db_session.commit()
        return user

    return _make


@pytest.fixture
def auth_headers(make_user, cipher):
    """Factory: bearer headers for a freshly created user holding ``role``."""

    def _headers(role=Role.RECEPTIONIST, email=None):
        user = make_user(role=role, email=email)
        token = create_user_token(user.id, cipher.decrypt(user.encrypted_email), user.role)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def admin_headers(auth_headers):
    return auth_headers(Role.ADMINISTRATOR)


@pytest.fixture
def vet_headers(auth_headers):
    return auth_headers(Role.VETERINARIAN)


@pytest.fixture
def receptionist_headers(auth_headers):
    return auth_headers(Role.RECEPTIONIST)


@pytest.fixture
def principal():
    return Principal(id=1, email="admin@clinic.test", role=Role.ADMINISTRATOR.value)


@pytest.fixture
def make_owner(db_session, cipher):
    def _make(name="Ana Souza", email="ana@example.com", phone="555-0100"):
        owner = models.Owner(
            encrypted_name=cipher.encrypt(name),
            encrypted_email=cipher.encrypt(email),
            encrypted_phone=cipher.encrypt(phone),
            email_index=cipher.blind_index(email),
        )
        db_session.add(owner)
        db_session.commit()
        return owner

    return _make


@pytest.fixture
def make_pet(db_session, cipher):
    def _make(owner, name="Rex", breed="Labrador", age=3):
        pet = models.Pet(
            encrypted_name=cipher.encrypt(name),
            breed=breed,
            age=age,
            owner_id=owner.id,
        )
        db_session.add(pet)
        db_session.commit()
        return pet

    return _make


@pytest.fixture
def make_product(document_store):
    def _make(name="Dog Food", price=10.0, stock=5, category="Food", active=True):
        return ProductRepository(document_store).insert(
            {
                "name": name,
                "description": "",
                "price": price,
                "stock": stock,
                "category": category,
                "image": None,
                "active": active,
            }
        )

    return _make


@pytest.fixture
def make_service(document_store):
    def _make(name="Consultation", subcategories=None, active=True):
        return ServiceRepository(document_store).insert(
            {
                "name": name,
                "description": "General consultation",
                "image": None,
                "active": active,
                "subcategories": subcategories if subcategories is not None else [],
            }
        )

    return _make
