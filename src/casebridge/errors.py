"""
Domain error taxonomy.

Every error carries a stable ``kind`` for programmatic handling and an
HTTP status used by the API exception handler. None of these are retried
by the core; they are surfaced verbatim to the caller.
"""

from typing import Any, Optional


class CaseBridgeError(Exception):
    """Base class for all recoverable-by-caller domain errors."""

    kind = "error"
    status_code = 400
    default_message = "Request could not be completed"

    def __init__(self, message: Optional[str] = None, **context: Any):
        self.message = message or self.default_message
        self.context = context
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.kind, "message": self.message}
        if self.context:
            body["context"] = {k: str(v) for k, v in self.context.items()}
        return body


class Unauthorized(CaseBridgeError):
    """No valid session."""

    kind = "unauthorized"
    status_code = 401
    default_message = "Authentication required"


class IdentityRejected(CaseBridgeError):
    """Valid session, but the principal may not proceed."""

    status_code = 403
    terminate_session = False


class NotProvisioned(IdentityRejected):
    kind = "not_provisioned"
    default_message = "No profile exists for this account"


class NotInternal(IdentityRejected):
    kind = "not_internal"
    default_message = "This area is restricted to firm staff"


class AccountInactive(IdentityRejected):
    """Principal status is not active. Locked, suspended and deactivated
    accounts must have their session terminated by the caller."""

    kind = "account_inactive"
    default_message = "Account is not active"

    def __init__(self, status: str, message: Optional[str] = None):
        super().__init__(message or f"Account is {status}", status=status)
        self.status = status
        self.terminate_session = status in ("locked", "suspended", "deactivated")


class Forbidden(CaseBridgeError):
    kind = "forbidden"
    status_code = 403
    default_message = "Insufficient role or scope for this action"


class NotFound(CaseBridgeError):
    kind = "not_found"
    status_code = 404
    default_message = "Not found"


class IllegalTransition(CaseBridgeError):
    kind = "illegal_transition"
    status_code = 409
    default_message = "Status transition not permitted"


class InvalidSourceState(CaseBridgeError):
    kind = "invalid_source_state"
    status_code = 409
    default_message = "Matter is not in a state that allows this action"


class AlreadyAssigned(CaseBridgeError):
    kind = "already_assigned"
    status_code = 409
    default_message = "Matter already has an active assignment"


class NoEligibleStaff(CaseBridgeError):
    kind = "no_eligible_staff"
    status_code = 422
    default_message = "Target is not an active associate lawyer of this firm"


class InvitationInvalid(CaseBridgeError):
    kind = "invitation_invalid"
    status_code = 410
    default_message = "Invitation is invalid, expired or already used"


class Conflict(CaseBridgeError):
    kind = "conflict"
    status_code = 409
    default_message = "The record was changed by another request; reload and retry"


class ValidationFailed(CaseBridgeError):
    kind = "validation_failed"
    status_code = 422
    default_message = "Invalid input"
