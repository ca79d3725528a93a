"""
CaseBridge Security Module

Provides encryption, authentication, and authorization utilities.

Includes:
- PII encryption with AES-256-GCM
- Password hashing with Argon2id
- JWT authentication
- Role permissions and matter-level access control
"""

from casebridge.security.encryption import (
    PIIEncryption,
    decrypt_pii,
    derive_key,
    encrypt_pii,
    token_digest,
)
from casebridge.security.auth import (
    AuthenticationError,
    TokenPayload,
    create_access_token,
    create_refresh_token,
    hash_password,
    verify_access_token,
    verify_password,
    verify_refresh_token,
)

__all__ = [
    # Encryption
    "PIIEncryption",
    "encrypt_pii",
    "decrypt_pii",
    "derive_key",
    "token_digest",
    # Authentication
    "AuthenticationError",
    "TokenPayload",
    "hash_password",
    "verify_password",
    "create_access_token",
    "create_refresh_token",
    "verify_access_token",
    "verify_refresh_token",
]
