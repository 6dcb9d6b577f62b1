"""
Domain errors for the project archive.

Each error carries a machine-readable ``code`` and the HTTP status the API
layer answers with. Raise these from the lifecycle and route code; the
handler in ``main`` turns them into JSON responses.
"""

from typing import Optional, Any, Dict


class ArchiveError(Exception):
    """Base exception for all project archive errors"""

    status_code = 500

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


# ============================================
# Authorization
# ============================================

class AuthorizationError(ArchiveError):
    """Actor role lacks permission for this action"""

    status_code = 403

    def __init__(self, message: str = "Not authorized", role: Optional[str] = None):
        super().__init__(message, code="NOT_AUTHORIZED")
        if role:
            self.details["role"] = role


# ============================================
# Resource errors (404)
# ============================================

class NotFoundError(ArchiveError):
    """Base class for not found errors"""

    status_code = 404

    def __init__(self, resource_type: str, resource_id: Any):
        super().__init__(
            f"{resource_type} with ID '{resource_id}' not found",
            code=f"{resource_type.upper()}_NOT_FOUND",
            details={"resource_type": resource_type, "resource_id": str(resource_id)}
        )


class ProjectNotFoundError(NotFoundError):
    def __init__(self, project_id: Any):
        super().__init__("Project", project_id)


class UserNotFoundError(NotFoundError):
    def __init__(self, user_id: Any):
        super().__init__("User", user_id)


# ============================================
# Validation errors (400)
# ============================================

class ValidationError(ArchiveError):
    """Input validation failed"""

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, code="VALIDATION_ERROR", details=details)


class EmptyFeedbackError(ValidationError):
    def __init__(self, message: str = "Feedback text must not be empty"):
        super().__init__(message, field="feedback")
        self.code = "EMPTY_FEEDBACK"


class MissingFeedbackError(ValidationError):
    """A rejection was requested without an explanation"""

    def __init__(self, message: str = "Feedback is required when rejecting a project"):
        super().__init__(message, field="feedback")
        self.code = "MISSING_FEEDBACK"


class InvalidGradeError(ValidationError):
    def __init__(self, value: Any, reason: str = "Grade must be a number between 0 and 100"):
        super().__init__(reason, field="grade")
        self.code = "INVALID_GRADE"
        self.details["value"] = str(value)


# ============================================
# State errors (409)
# ============================================

class InvalidTransitionError(ArchiveError):
    """Action not permitted from the project's current status"""

    status_code = 409

    def __init__(self, action: str, current_status: str, message: Optional[str] = None):
        super().__init__(
            message or f"Cannot {action} a project with status '{current_status}'",
            code="INVALID_TRANSITION",
            details={"action": action, "current_status": current_status}
        )


class ConcurrencyConflictError(ArchiveError):
    """The project changed since the caller last read it"""

    status_code = 409

    def __init__(self, project_id: Any, expected_version: Optional[int] = None,
                 current_version: Optional[int] = None):
        super().__init__(
            f"Project '{project_id}' was modified by another request; reload and retry",
            code="VERSION_CONFLICT",
            details={
                "project_id": str(project_id),
                "expected_version": expected_version,
                "current_version": current_version,
            }
        )


def error_response(error: ArchiveError) -> Dict[str, Any]:
    """Convert exception to API error response body"""
    return {
        "detail": error.message,
        "error": error.to_dict()
    }
