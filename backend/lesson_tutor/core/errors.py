"""Error taxonomy shared by the tutoring core and the HTTP layer.

Every error carries a stable machine-readable ``code`` plus a short human
message. ``main.py`` renders them into the response envelope.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class TutorError(Exception):
    code = "INTERNAL_ERROR"
    status_code = 500
    default_message = "Server error"

    def __init__(self, message: Optional[str] = None, *, details: Optional[Dict[str, Any]] = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_error(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            out["details"] = self.details
        return out


class Unauthenticated(TutorError):
    code = "UNAUTHENTICATED"
    status_code = 401
    default_message = "Unauthorized"


class AccessDenied(TutorError):
    code = "ACCESS_DENIED"
    status_code = 403
    default_message = "Purchase required"


class NotFound(TutorError):
    code = "NOT_FOUND"
    status_code = 404
    default_message = "Course/Chapter not found"


class InvalidRequest(TutorError):
    code = "VALIDATION_ERROR"
    status_code = 422
    default_message = "Invalid request"


class RateLimited(TutorError):
    code = "RATE_LIMITED"
    status_code = 429
    default_message = "Too many questions. Please wait a moment and try again."

    def __init__(self, retry_after_sec: int, message: Optional[str] = None):
        self.retry_after_sec = max(1, int(retry_after_sec))
        super().__init__(message, details={"retry_after_sec": self.retry_after_sec})


class GenerationUnavailable(TutorError):
    code = "GENERATION_UNAVAILABLE"
    status_code = 503
    default_message = "The tutor is temporarily unavailable."


class InternalError(TutorError):
    code = "INTERNAL_ERROR"
    status_code = 500
    default_message = "Server error"
