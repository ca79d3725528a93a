"""
Custom SQLAlchemy column types for CaseBridge.

Includes the encrypted type for PII and a JSON type that maps to JSONB on
PostgreSQL while staying portable to other dialects.
"""

from typing import Optional

from sqlalchemy import JSON, String, TypeDecorator
from sqlalchemy.dialects.postgresql import JSONB

from casebridge.security.encryption import decrypt_pii, encrypt_pii

JSONType = JSON().with_variant(JSONB(), "postgresql")


class EncryptedString(TypeDecorator):
    """
    A SQLAlchemy type that transparently encrypts/decrypts string values.

    Usage:
        phone: Mapped[Optional[str]] = mapped_column(EncryptedString(32))

    Storage format: "enc2:<base64(nonce || ciphertext || tag)>"
    """

    impl = String
    cache_ok = True

    def __init__(self, length: Optional[int] = None, *args, **kwargs):
        # Nonce, tag and base64 overhead on top of the plaintext length
        if length:
            length = length * 2 + 64
        super().__init__(length, *args, **kwargs)

    def process_bind_param(self, value: Optional[str], dialect) -> Optional[str]:
        """Encrypt value before storing in database."""
        if value is None:
            return None
        return encrypt_pii(value)

    def process_result_value(self, value: Optional[str], dialect) -> Optional[str]:
        """Decrypt value when reading from database."""
        if value is None:
            return None
        return decrypt_pii(value)
