# files_core/services/encryption.py

import os
import hashlib
import logging
from typing import Optional

from cryptography.hazmat.primitives.ciphers.aead import AESGCM

logger = logging.getLogger(__name__)

NONCE_SIZE = 12  # recommended nonce size for AES-GCM
TAG_SIZE = 16


# --- Helper: secret key derivation ---
def derive_key(secret_key: Optional[str], fallback_secret: Optional[str] = None) -> bytes:
    """Turn the configured secret into a 32-byte AES key.

    A 64-character hex secret is used as-is; anything else is hashed. Without
    a secret the key is derived from the fallback (or a fixed default).
    """
    if secret_key:
        try:
            key = bytes.fromhex(secret_key)
            if len(key) == 32:
                return key
        except ValueError:
            pass
        return hashlib.sha256(secret_key.encode()).digest()

    logger.warning(
        "ENCRYPTION_SECRET_KEY is not set; deriving a key from SECRET_KEY "
        "(not recommended in production)"
    )
    base = fallback_secret or "default-secret"
    return hashlib.sha256((base + "storage-encryption").encode()).digest()


class EncryptionService:
    """
    AES-256-GCM encryption for sensitive strings (storage credentials).

    Each value gets its own random IV. The stored form is
    ``iv:tag:ciphertext`` with every part hex encoded.
    """

    def __init__(self, key: bytes):
        if len(key) != 32:
            raise ValueError("Encryption key must be 32 bytes")
        self._key = key

    def encrypt(self, text: str) -> str:
        """Encrypt a UTF-8 string."""
        iv = os.urandom(NONCE_SIZE)
        sealed = AESGCM(self._key).encrypt(iv, text.encode("utf-8"), None)
        ciphertext, tag = sealed[:-TAG_SIZE], sealed[-TAG_SIZE:]
        return f"{iv.hex()}:{tag.hex()}:{ciphertext.hex()}"

    def decrypt(self, encrypted_data: str) -> str:
        """Decrypt a value produced by encrypt. Raises ValueError on bad input."""
        parts = encrypted_data.split(":")
        if len(parts) != 3:
            raise ValueError("Invalid encrypted data format")

        iv, tag, ciphertext = (bytes.fromhex(p) for p in parts)
        # InvalidTag surfaces as ValueError for callers
        try:
            plain = AESGCM(self._key).decrypt(iv, ciphertext + tag, None)
        except Exception as e:
            raise ValueError(f"Decryption failed: {e.__class__.__name__}") from e
        return plain.decode("utf-8")

    @staticmethod
    def is_encrypted(data: str) -> bool:
        return data.count(":") == 2
