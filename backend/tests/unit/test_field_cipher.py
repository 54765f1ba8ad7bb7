"""
Unit tests for the field cipher and encrypted email lookups.
"""

import pytest

from petpocket.core.cipher import FieldCipher, normalize_email
from petpocket.db.base import Owner
from petpocket.repositories.owner_repo import OwnerRepository


@pytest.fixture
def field_cipher():
    return FieldCipher("unit-test-secret")


@pytest.mark.unit
class TestFieldCipher:
    def test_round_trip_returns_original_text(self, field_cipher):
        token = field_cipher.encrypt("Ana Souza")

        assert token != "Ana Souza"
        assert field_cipher.decrypt(token) == "Ana Souza"

    def test_encryption_is_randomized(self, field_cipher):
        assert field_cipher.encrypt("same") != field_cipher.encrypt("same")

    @pytest.mark.parametrize("value", [None, ""])
    def test_empty_values_pass_through(self, field_cipher, value):
        assert field_cipher.encrypt(value) == value
        assert field_cipher.decrypt(value) == value

    def test_decrypt_returns_plaintext_that_was_never_encrypted(self, field_cipher):
        assert field_cipher.decrypt("legacy plain value") == "legacy plain value"

    def test_decrypt_with_other_key_returns_stored_value(self, field_cipher):
        token = FieldCipher("another-secret").encrypt("hidden")

        assert field_cipher.decrypt(token) == token

    def test_blind_index_ignores_case_and_whitespace(self, field_cipher):
        assert field_cipher.blind_index(" Ana@Example.com ") == field_cipher.blind_index(
            "ana@example.com"
        )

    def test_blind_index_depends_on_key(self, field_cipher):
        other = FieldCipher("another-secret")

        assert field_cipher.blind_index("ana@example.com") != other.blind_index(
            "ana@example.com"
        )

    def test_blind_index_of_empty_email_is_none(self, field_cipher):
        assert field_cipher.blind_index("") is None

    def test_normalize_email(self):
        assert normalize_email("  USER@Mail.COM ") == "user@mail.com"
        assert normalize_email(None) == ""

    def test_empty_secret_is_rejected(self):
        with pytest.raises(ValueError):
            FieldCipher("")


@pytest.mark.unit
class TestEncryptedEmailLookup:
    def test_finds_owner_by_email_in_any_case(self, make_owner, db_session, cipher):
        owner = make_owner(email="ana@example.com")

        found = OwnerRepository(db_session).find_by_email("ANA@example.com", cipher)

        assert found is not None
        assert found.id == owner.id

    def test_unknown_email_returns_none(self, make_owner, db_session, cipher):
        make_owner(email="ana@example.com")

        assert OwnerRepository(db_session).find_by_email("bob@example.com", cipher) is None

    def test_exclude_id_skips_the_row_being_updated(self, make_owner, db_session, cipher):
        owner = make_owner(email="ana@example.com")

        found = OwnerRepository(db_session).find_by_email(
            "ana@example.com", cipher, exclude_id=owner.id
        )

        assert found is None

    def test_rows_without_index_are_found_by_scan(self, db_session, cipher):
        legacy = Owner(
            encrypted_name=cipher.encrypt("Legacy"),
            encrypted_email=cipher.encrypt("legacy@example.com"),
            encrypted_phone=cipher.encrypt("555-0101"),
            email_index=None,
        )
        db_session.add(legacy)
        db_session.commit()

        found = OwnerRepository(db_session).find_by_email("legacy@example.com", cipher)

        assert found is not None
        assert found.id == legacy.id
