"""Error taxonomy shared by services and routers.

Every error is an ``HTTPException`` so services can raise it directly, the
same way the route layer does. ``main.py`` renders them with a single handler
as ``{"ok": false, "error", "code", "details", ...}``.
"""
from typing import Any, Optional

from fastapi import HTTPException, status


class ConciergeError(HTTPException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_error = "Internal Server Error"
    default_code = "internal_error"

    def __init__(
        self,
        details: Optional[str] = None,
        *,
        error: Optional[str] = None,
        code: Optional[str] = None,
        extra: Optional[dict[str, Any]] = None,
    ):
        self.error = error or self.default_error
        self.code = code or self.default_code
        self.details = details
        self.extra = dict(extra or {})
        super().__init__(status_code=self.status_code, detail=details or self.error)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"ok": False, "error": self.error, "code": self.code}
        if self.details is not None:
            payload["details"] = self.details
        payload.update(self.extra)
        return payload


class EnquiryValidationError(ConciergeError):
    """Client input failed the enquiry scoring rules. Fully recoverable by resubmitting."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_error = "Validation failed"
    default_code = "validation_failed"


class BadRequest(ConciergeError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_error = "Bad request"
    default_code = "bad_request"


class Unauthorized(ConciergeError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_error = "Unauthorized"
    default_code = "unauthorized"


class Forbidden(ConciergeError):
    status_code = status.HTTP_403_FORBIDDEN
    default_error = "Forbidden"
    default_code = "forbidden"


class NotFoundError(ConciergeError):
    status_code = status.HTTP_404_NOT_FOUND
    default_error = "Not found"
    default_code = "not_found"


class ConflictError(ConciergeError):
    """A conditional write affected zero rows, or state did not allow the transition.

    Callers should re-fetch current state before retrying.
    """

    status_code = status.HTTP_409_CONFLICT
    default_error = "Conflict"
    default_code = "conflict"


class InvariantViolation(ConflictError):
    """The credit ledger refused a mutation that would break ``credits_balance >= 0``."""

    default_code = "insufficient_credits"


class RateLimited(ConciergeError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_error = "Too many requests"
    default_code = "rate_limited"


class DependencyUnavailable(ConciergeError):
    """A required collaborator (email, auth provider) failed for a primary action."""

    default_error = "Dependency unavailable"
    default_code = "dependency_unavailable"
