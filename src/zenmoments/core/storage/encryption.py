"""Encryption of feedback locations at rest.

Only the position attached to a feedback record is sensitive; moment ids,
timestamps and verdicts stay in clear so the history can be queried.

``ENCRYPTION_KEY`` may hold several comma-separated Fernet keys. The first
one encrypts new records, all of them are tried when reading, so a key can
be rotated without rewriting the stored history.
"""

from __future__ import annotations

import json
import logging

from cryptography.fernet import Fernet, InvalidToken, MultiFernet

logger = logging.getLogger(__name__)


class EncryptionError(Exception):
    """Raised when a location cannot be encrypted or decrypted."""


def _parse_keys(key: str) -> list[str]:
    return [part.strip() for part in key.split(",") if part.strip()]


class FieldEncryptor:
    """Seals ``{"latitude": ..., "longitude": ...}`` mappings into Fernet tokens.

    Usage::

        encryptor = FieldEncryptor("new-key,old-key")
        token = encryptor.encrypt({"latitude": 52.36, "longitude": 4.90})
        encryptor.decrypt(token)  # {"latitude": 52.36, "longitude": 4.90}
    """

    def __init__(self, key: str) -> None:
        keys = _parse_keys(key or "")
        if not keys:
            raise EncryptionError("Encryption key must not be empty")
        try:
            self._fernet = MultiFernet([Fernet(k.encode()) for k in keys])
        except ValueError as exc:
            raise EncryptionError(f"Invalid encryption key: {exc}") from exc
        if len(keys) > 1:
            logger.info("Feedback encryption using %d keys (first one encrypts)", len(keys))

    def encrypt(self, location: dict[str, float] | None) -> str:
        """Encrypt a location mapping. ``None`` becomes an empty string."""
        if location is None:
            return ""
        try:
            payload = {
                "latitude": float(location["latitude"]),
                "longitude": float(location["longitude"]),
            }
        except (KeyError, TypeError, ValueError) as exc:
            raise EncryptionError(f"Encryption failed: not a location ({exc!r})") from exc
        plaintext = json.dumps(payload, separators=(",", ":")).encode("utf-8")
        return self._fernet.encrypt(plaintext).decode("utf-8")

    def decrypt(self, token: str) -> dict[str, float] | None:
        """Decrypt a token written by :meth:`encrypt` with any configured key."""
        if not token:
            return None
        try:
            data = json.loads(self._fernet.decrypt(token.encode("utf-8")))
        except InvalidToken as exc:
            raise EncryptionError("Decryption failed: invalid token or wrong key") from exc
        except ValueError as exc:
            raise EncryptionError(f"Decryption failed: {exc}") from exc
        if not isinstance(data, dict) or not {"latitude", "longitude"} <= data.keys():
            raise EncryptionError("Decryption failed: payload is not a location")
        return {"latitude": data["latitude"], "longitude": data["longitude"]}

    def rotate(self, token: str) -> str:
        """Re-encrypt ``token`` under the primary key."""
        if not token:
            return ""
        try:
            return self._fernet.rotate(token.encode("utf-8")).decode("utf-8")
        except InvalidToken as exc:
            raise EncryptionError("Rotation failed: invalid token or wrong key") from exc

    @staticmethod
    def generate_key() -> str:
        """Generate a new URL-safe base64-encoded Fernet key."""
        return Fernet.generate_key().decode("utf-8")
