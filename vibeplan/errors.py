"""
VibePlan — Domain exceptions.

Every error the engine surfaces carries a machine-readable ``code`` and the
HTTP status it maps to.  ``vibeplan.main`` renders them uniformly; services
raise them and never build HTTP responses themselves.
"""

from __future__ import annotations


class VibePlanError(Exception):
    """Base class for all errors raised by the consensus engine."""

    code: str = "internal_error"
    status_code: int = 500
    retryable: bool = False

    def __init__(self, message: str | None = None, *, code: str | None = None) -> None:
        self.message = message or self.__class__.__doc__ or self.code
        if code is not None:
            self.code = code
        super().__init__(self.message)


# ── Validation ────────────────────────────────────────────────────────────────

class InvalidInputError(VibePlanError):
    """The request payload is malformed or out of range."""

    code = "validation_error"
    status_code = 422


class SessionExpiredError(InvalidInputError):
    """The session has passed its expiry time."""

    code = "session_expired"
    status_code = 410


# ── Not found ─────────────────────────────────────────────────────────────────

class NotFoundError(VibePlanError):
    """The requested resource does not exist."""

    code = "not_found"
    status_code = 404


class SessionNotFoundError(NotFoundError):
    """Session not found."""

    code = "session_not_found"


class InviteNotFoundError(NotFoundError):
    """Invite token is unknown."""

    code = "invalid_token"


class ParticipantNotFoundError(NotFoundError):
    """Participant not found in session."""

    code = "participant_not_found"


# ── Storage ───────────────────────────────────────────────────────────────────

class StorageError(VibePlanError):
    """Storage temporarily unavailable."""

    code = "storage_unavailable"
    status_code = 503
    retryable = True


class ConcurrentUpdateError(StorageError):
    """The participant was modified by another request."""

    code = "concurrent_update"
    status_code = 409


class TokenCollisionError(VibePlanError):
    """A generated invite token is already taken."""

    code = "token_collision"
