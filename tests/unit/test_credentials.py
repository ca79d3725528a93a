"""
Unit tests for credentials, tokens, PII encryption and the model helpers
that need no database.

Tests:
- Argon2id password hashing
- JWT access and refresh tokens
- AES-256-GCM PII encryption and key derivation
- Lockout bookkeeping on Principal
- Invitation expiry
"""

import os
from datetime import datetime, timedelta
from uuid import uuid4

import pytest

from casebridge.db.orm import (
    GENESIS_HASH,
    AuditLog,
    Invitation,
    InvitationStatus,
    Principal,
    PrincipalStatus,
)
from casebridge.security.auth import (
    AuthenticationError,
    TokenType,
    create_access_token,
    create_refresh_token,
    decode_token,
    hash_password,
    verify_access_token,
    verify_password,
    verify_refresh_token,
)
from casebridge.security.encryption import PIIEncryption, derive_key, token_digest


class TestPasswords:
    """Tests for password hashing."""

    def test_hash_and_verify(self):
        """Should verify the right password and reject a wrong one."""
        hashed = hash_password("s3cret-passphrase")

        assert hashed.startswith("$argon2id$")
        assert verify_password("s3cret-passphrase", hashed)
        assert not verify_password("wrong", hashed)

    def test_garbage_hash(self):
        """Should reject a malformed stored hash without raising."""
        assert not verify_password("anything", "not-a-hash")


class TestTokens:
    """Tests for JWT tokens."""

    def test_access_token_round_trip(self):
        """Should carry the principal id and integer timestamps."""
        principal_id = uuid4()

        payload = verify_access_token(create_access_token(principal_id))

        assert payload.principal_id == principal_id
        assert payload.type == TokenType.ACCESS
        assert payload.exp > payload.iat

    def test_token_types_are_not_interchangeable(self):
        """Should reject a refresh token where an access token is required and vice versa."""
        principal_id = uuid4()

        with pytest.raises(AuthenticationError):
            verify_access_token(create_refresh_token(principal_id))
        with pytest.raises(AuthenticationError):
            verify_refresh_token(create_access_token(principal_id))

    def test_expired_token(self):
        """Should reject an expired token."""
        token = create_access_token(uuid4(), expires_delta=timedelta(seconds=-60))

        with pytest.raises(AuthenticationError):
            decode_token(token)

    def test_tampered_token(self):
        """Should reject a token with a modified signature."""
        token = create_access_token(uuid4())
        head, body, signature = token.split(".")
        forged = ".".join([head, body, signature[::-1]])

        with pytest.raises(AuthenticationError):
            decode_token(forged)


class TestPIIEncryption:
    """Tests for field encryption."""

    def test_round_trip(self):
        """Should decrypt what it encrypted."""
        crypto = PIIEncryption(os.urandom(32))

        ciphertext = crypto.encrypt("+2348012345678")

        assert ciphertext.startswith("enc2:")
        assert "+2348012345678" not in ciphertext
        assert crypto.decrypt(ciphertext) == "+2348012345678"

    def test_random_nonce(self):
        """Should produce a different ciphertext each time."""
        crypto = PIIEncryption(os.urandom(32))

        assert crypto.encrypt("same") != crypto.encrypt("same")

    def test_wrong_key_fails(self):
        """Should refuse to decrypt with another key."""
        ciphertext = PIIEncryption(os.urandom(32)).encrypt("secret")

        with pytest.raises(ValueError):
            PIIEncryption(os.urandom(32)).decrypt(ciphertext)

    def test_key_length_is_checked(self):
        """Should reject keys that are not 256 bits."""
        with pytest.raises(ValueError):
            PIIEncryption(b"short")

    def test_purposes_derive_different_keys(self):
        """Should separate keys by purpose."""
        master = "a" * 40

        assert derive_key(master, "pii_encryption") != derive_key(master, "audit_chain")
        assert len(derive_key(master, "invitation_token")) == 32
        with pytest.raises(ValueError):
            derive_key(master, "unknown")

    def test_token_digest(self):
        """Should be deterministic and never equal the token."""
        assert token_digest("abc") == token_digest("abc")
        assert token_digest("abc") != token_digest("abd")
        assert token_digest("abc") != "abc"


class TestLockoutBookkeeping:
    """Tests for Principal lockout helpers."""

    def make_principal(self) -> Principal:
        return Principal(status=PrincipalStatus.ACTIVE, failed_login_attempts=0)

    def test_locks_on_threshold(self):
        """Should lock on the attempt that reaches the threshold."""
        principal = self.make_principal()

        assert not principal.record_failed_login(max_attempts=3, lockout_minutes=10)
        assert not principal.record_failed_login(max_attempts=3, lockout_minutes=10)
        assert principal.record_failed_login(max_attempts=3, lockout_minutes=10)
        assert principal.status == PrincipalStatus.LOCKED
        assert principal.is_locked

    def test_success_resets(self):
        """Should clear the counter and the lock on success."""
        principal = self.make_principal()
        principal.record_failed_login(max_attempts=1, lockout_minutes=10)

        principal.record_successful_login()

        assert principal.status == PrincipalStatus.ACTIVE
        assert principal.failed_login_attempts == 0
        assert principal.locked_until is None


class TestModelHelpers:
    """Tests for invitation expiry and audit hashing."""

    def test_invitation_expiry_is_derived(self):
        """Should report expired without a stored expired state."""
        now = datetime(2025, 3, 1, 12, 0)
        invitation = Invitation(status=InvitationStatus.PENDING, expires_at=now)

        assert invitation.effective_status(now) == InvitationStatus.PENDING
        assert invitation.effective_status(now + timedelta(seconds=1)) == InvitationStatus.EXPIRED

        invitation.status = InvitationStatus.ACCEPTED
        assert invitation.effective_status(now + timedelta(days=30)) == InvitationStatus.ACCEPTED

    def test_entry_hash_depends_on_chain(self):
        """Should change the hash when the previous hash changes."""
        fields = dict(
            firm_id=uuid4(),
            actor_id=uuid4(),
            action="case_status_changed",
            target_id=None,
            matter_id=uuid4(),
            details={"from": "in_review", "to": "assigned"},
            timestamp=datetime(2025, 3, 1, 12, 0),
            audit_key=b"k" * 32,
        )

        first = AuditLog.compute_entry_hash(previous_hash=GENESIS_HASH, **fields)
        second = AuditLog.compute_entry_hash(previous_hash=first, **fields)

        assert len(first) == 64
        assert first != second
        assert AuditLog.verify_chain([], b"k" * 32) == (True, None)
