"""
Encryption at rest for uploaded files.

AES-256-GCM with a random 96-bit nonce per blob. Stored layout is
``nonce || ciphertext+tag``.
"""

import base64
import binascii
import logging
import os
from functools import lru_cache

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from mediavault.config import settings
from mediavault.core.exceptions import EncryptionError

logger = logging.getLogger(__name__)

KEY_SIZE = 32
NONCE_SIZE = 12


class EncryptionService:
    """Symmetric encryption of file contents."""

    def __init__(self, key_b64: str):
        if not key_b64:
            raise EncryptionError("Encryption key not configured (set ENCRYPTION_KEY)")
        try:
            key = base64.b64decode(key_b64, validate=True)
        except (binascii.Error, ValueError) as e:
            raise EncryptionError(f"Encryption key is not valid base64: {e}")
        if len(key) != KEY_SIZE:
            raise EncryptionError("Encryption key must be 32 bytes (256 bits) for AES-256")
        self._aead = AESGCM(key)

    def encrypt(self, data: bytes) -> bytes:
        nonce = os.urandom(NONCE_SIZE)
        return nonce + self._aead.encrypt(nonce, data, None)

    def decrypt(self, blob: bytes) -> bytes:
        if len(blob) < NONCE_SIZE:
            raise EncryptionError("Encrypted blob is truncated")
        nonce, ciphertext = blob[:NONCE_SIZE], blob[NONCE_SIZE:]
        try:
            return self._aead.decrypt(nonce, ciphertext, None)
        except InvalidTag:
            logger.error("Failed to decrypt data: authentication tag mismatch")
            raise EncryptionError("Authentication tag mismatch")

    @staticmethod
    def generate_key() -> str:
        """Generate a new random base64 key suitable for ENCRYPTION_KEY."""
        return base64.b64encode(AESGCM.generate_key(bit_length=256)).decode("ascii")


@lru_cache()
def get_encryption_service() -> EncryptionService:
    """Get cached encryption service built from settings."""
    return EncryptionService(settings.encryption_key)
