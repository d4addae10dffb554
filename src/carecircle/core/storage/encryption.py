"""Fernet encryption of health record payloads at rest.

Caregiver observations (readings, notes, who recorded what) are sealed
before they reach SQLite. Only the columns the history query needs
(group, kind, recorded_at) stay in clear text.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)


class EncryptionError(Exception):
    """Raised when a payload cannot be sealed or opened."""


class PayloadCipher:
    """Seals JSON-serializable payloads into Fernet tokens and back.

    Usage::

        cipher = PayloadCipher(key=PayloadCipher.generate_key())
        token = cipher.seal({"temperature": 37.8})
        cipher.open(token)  # {"temperature": 37.8}
    """

    def __init__(self, key: str) -> None:
        """Initialize with a Fernet key.

        Raises:
            EncryptionError: If the key is empty or not a valid Fernet key.
        """
        if not key or not key.strip():
            raise EncryptionError("Encryption key must not be empty")
        try:
            self._fernet = Fernet(key.encode("utf-8"))
        except (TypeError, ValueError) as exc:
            raise EncryptionError(f"Invalid encryption key: {exc}") from exc

    def seal(self, payload: Any) -> str:
        """Serialize ``payload`` to compact JSON and encrypt it.

        ``None`` seals to the empty string.

        Raises:
            EncryptionError: If the payload is not JSON-serializable.
        """
        if payload is None:
            return ""
        try:
            plaintext = json.dumps(payload, ensure_ascii=False, separators=(",", ":"))
        except (TypeError, ValueError) as exc:
            raise EncryptionError(f"Payload is not JSON-serializable: {exc}") from exc
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("utf-8")

    def open(self, token: str) -> Any:
        """Decrypt a token produced by :meth:`seal`.

        Raises:
            EncryptionError: On a tampered token or a wrong key.
        """
        if not token:
            return None
        try:
            plaintext = self._fernet.decrypt(token.encode("utf-8"))
        except InvalidToken as exc:
            raise EncryptionError("Decryption failed: invalid token or wrong key") from exc
        try:
            return json.loads(plaintext)
        except ValueError as exc:
            raise EncryptionError(f"Decrypted payload is not JSON: {exc}") from exc

    @staticmethod
    def generate_key() -> str:
        """Return a new URL-safe base64 Fernet key."""
        return Fernet.generate_key().decode("utf-8")
