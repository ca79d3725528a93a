"""
PII field encryption and key derivation for CaseBridge.

Encrypts client contact details (phone numbers, postal addresses) at rest.

SECURITY NOTES:
- AES-256-GCM with a random 96-bit nonce per value
- Keys derived from PII_ENCRYPTION_KEY with HKDF, one info string per purpose
- The audit chain HMAC key is derived from SECRET_KEY, never reused for encryption
"""

import base64
import binascii
import hashlib
import hmac
import logging
import os
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from casebridge.config import settings

logger = logging.getLogger(__name__)

NONCE_SIZE = 12  # 96 bits for AES-GCM
KEY_SIZE = 32    # 256 bits for AES-256
PREFIX = "enc2"

# HKDF info strings for domain separation
HKDF_INFO = {
    "pii_encryption": b"casebridge-pii-encryption-v1",
    "audit_chain": b"casebridge-audit-chain-v1",
    "invitation_token": b"casebridge-invitation-token-v1",
}


def derive_key(master_key: str, purpose: str) -> bytes:
    """
    Derive a 256-bit purpose-specific key from a master key using HKDF.

    Args:
        master_key: The master key string (from config)
        purpose: One of the HKDF_INFO keys

    Returns:
        32-byte derived key
    """
    if purpose not in HKDF_INFO:
        raise ValueError(f"Unknown key purpose: {purpose}")

    # Fernet-style keys are urlsafe base64 of 32 bytes
    key_bytes = master_key.encode()
    if len(master_key) == 44 and master_key.endswith("="):
        try:
            key_bytes = base64.urlsafe_b64decode(master_key)
        except (binascii.Error, ValueError):
            key_bytes = master_key.encode()

    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=KEY_SIZE,
        salt=None,
        info=HKDF_INFO[purpose],
    )
    return hkdf.derive(key_bytes)


class PIIEncryption:
    """
    Encrypts and decrypts PII fields using AES-256-GCM.

    Security properties:
    - Confidentiality: AES-256 encryption
    - Integrity: GCM authentication tag
    - Unique ciphertexts: Random nonce per encryption
    """

    _instance: Optional["PIIEncryption"] = None

    def __init__(self, encryption_key: Optional[bytes] = None):
        if encryption_key is None:
            if not settings.pii_encryption_key:
                raise ValueError("PII_ENCRYPTION_KEY not configured")
            encryption_key = derive_key(settings.pii_encryption_key, "pii_encryption")

        if len(encryption_key) != KEY_SIZE:
            raise ValueError(f"Encryption key must be {KEY_SIZE} bytes")

        self._aesgcm = AESGCM(encryption_key)
        self.key_id = hashlib.sha256(encryption_key).hexdigest()[:8]

    @classmethod
    def get_instance(cls) -> "PIIEncryption":
        """Get singleton instance."""
        if cls._instance is None:
            cls._instance = PIIEncryption()
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Reset singleton (for testing)."""
        cls._instance = None

    def is_encrypted(self, value: str) -> bool:
        return bool(value) and value.startswith(f"{PREFIX}:")

    def encrypt(self, plaintext: str) -> str:
        """
        Encrypt a value. Format: enc2:<base64(nonce || ciphertext || tag)>
        """
        if not plaintext or self.is_encrypted(plaintext):
            return plaintext

        nonce = os.urandom(NONCE_SIZE)
        ciphertext = self._aesgcm.encrypt(nonce, plaintext.encode("utf-8"), None)
        encoded = base64.urlsafe_b64encode(nonce + ciphertext).decode("ascii")
        return f"{PREFIX}:{encoded}"

    def decrypt(self, ciphertext: str) -> str:
        """Decrypt a value produced by encrypt(); plaintext passes through."""
        if not self.is_encrypted(ciphertext):
            return ciphertext

        _, encoded = ciphertext.split(":", 1)
        try:
            combined = base64.urlsafe_b64decode(encoded)
            if len(combined) < NONCE_SIZE + 16:
                raise ValueError("Ciphertext too short")
            plaintext = self._aesgcm.decrypt(combined[:NONCE_SIZE], combined[NONCE_SIZE:], None)
        except (InvalidTag, binascii.Error, ValueError) as e:
            logger.error(f"Decryption failed: {type(e).__name__}")
            raise ValueError("Failed to decrypt PII data") from e
        return plaintext.decode("utf-8")


def encrypt_pii(plaintext: str) -> str:
    """Encrypt a PII value using the default encryption instance."""
    return PIIEncryption.get_instance().encrypt(plaintext)


def decrypt_pii(ciphertext: str) -> str:
    """Decrypt a PII value using the default encryption instance."""
    return PIIEncryption.get_instance().decrypt(ciphertext)


def audit_chain_key() -> bytes:
    """HMAC key for the audit log hash chain."""
    return derive_key(settings.secret_key, "audit_chain")


def token_digest(token: str) -> str:
    """
    Keyed digest of a single-use token for storage and lookup.

    Only the digest is persisted, so a database leak does not expose
    redeemable invitation tokens.
    """
    key = derive_key(settings.secret_key, "invitation_token")
    return hmac.new(key, token.encode("utf-8"), "sha256").hexdigest()
