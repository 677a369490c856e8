"""Tests for FieldEncryptor (Fernet-based location encryption)."""

from __future__ import annotations

import pytest
from cryptography.fernet import Fernet

from zenmoments.core.storage.encryption import EncryptionError, FieldEncryptor

AMSTERDAM = {"latitude": 52.3676, "longitude": 4.9041}


@pytest.fixture
def encryptor() -> FieldEncryptor:
    return FieldEncryptor(Fernet.generate_key().decode())


class TestRoundTrip:
    def test_location_round_trip(self, encryptor: FieldEncryptor):
        token = encryptor.encrypt(AMSTERDAM)
        assert isinstance(token, str)
        assert "52.3676" not in token
        assert encryptor.decrypt(token) == AMSTERDAM

    def test_extra_keys_are_dropped(self, encryptor: FieldEncryptor):
        token = encryptor.encrypt({**AMSTERDAM, "accuracy": 12})
        assert encryptor.decrypt(token) == AMSTERDAM

    def test_none_encrypts_to_empty_string(self, encryptor: FieldEncryptor):
        assert encryptor.encrypt(None) == ""
        assert encryptor.decrypt("") is None


class TestKeyValidation:
    def test_empty_key_raises(self):
        with pytest.raises(EncryptionError, match="must not be empty"):
            FieldEncryptor("")

    def test_only_separators_raises(self):
        with pytest.raises(EncryptionError, match="must not be empty"):
            FieldEncryptor(" , ")

    def test_invalid_key_raises(self):
        with pytest.raises(EncryptionError, match="Invalid encryption key"):
            FieldEncryptor("not-a-fernet-key")

    def test_generated_key_is_usable(self):
        enc = FieldEncryptor(FieldEncryptor.generate_key())
        assert enc.decrypt(enc.encrypt(AMSTERDAM)) == AMSTERDAM


class TestKeyRotation:
    def test_old_key_still_decrypts(self):
        old, new = FieldEncryptor.generate_key(), FieldEncryptor.generate_key()
        token = FieldEncryptor(old).encrypt(AMSTERDAM)
        assert FieldEncryptor(f"{new},{old}").decrypt(token) == AMSTERDAM

    def test_rotate_moves_token_to_primary_key(self):
        old, new = FieldEncryptor.generate_key(), FieldEncryptor.generate_key()
        token = FieldEncryptor(old).encrypt(AMSTERDAM)
        rotated = FieldEncryptor(f"{new},{old}").rotate(token)
        assert FieldEncryptor(new).decrypt(rotated) == AMSTERDAM
        with pytest.raises(EncryptionError):
            FieldEncryptor(old).decrypt(rotated)

    def test_rotate_empty_token(self, encryptor: FieldEncryptor):
        assert encryptor.rotate("") == ""


class TestFailures:
    def test_wrong_key_raises(self, encryptor: FieldEncryptor):
        token = encryptor.encrypt(AMSTERDAM)
        other = FieldEncryptor(Fernet.generate_key().decode())
        with pytest.raises(EncryptionError, match="wrong key"):
            other.decrypt(token)

    def test_non_location_raises(self, encryptor: FieldEncryptor):
        with pytest.raises(EncryptionError, match="not a location"):
            encryptor.encrypt({"when": object()})

    def test_non_numeric_coordinate_raises(self, encryptor: FieldEncryptor):
        with pytest.raises(EncryptionError, match="not a location"):
            encryptor.encrypt({"latitude": "north", "longitude": 4.9})

    def test_foreign_payload_rejected_on_decrypt(self):
        key = FieldEncryptor.generate_key()
        token = Fernet(key.encode()).encrypt(b"[1, 2]").decode()
        with pytest.raises(EncryptionError, match="not a location"):
            FieldEncryptor(key).decrypt(token)
