"""
Recurring engine errors.

Every error carries a machine readable code, a message and optional details,
and can be rendered into the standard error response shape.
"""

from typing import Any, Dict, Optional


class RecurrenceError(Exception):
    """Base exception for recurring engine errors"""
    code = "RECURRENCE_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None, code: Optional[str] = None):
        self.code = code or self.code
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class InvalidRule(RecurrenceError):
    """Malformed recurrence rule, rejected before it reaches the calculator."""
    code = "INVALID_RULE"


class InvalidStatus(RecurrenceError, ValueError):
    """Status value that is neither a known name nor a legacy integer code."""
    code = "INVALID_STATUS"


class TaskNotFound(RecurrenceError):
    code = "NOT_FOUND"


class ValidationFailed(RecurrenceError):
    """Task attributes outside the rule (priority, tags) failed validation."""
    code = "VALIDATION_ERROR"


class AmbiguousParent(RecurrenceError):
    """
    An instance whose recurring_parent_id does not resolve to a template.

    Recoverable: callers should render the instance without recurrence
    controls instead of failing the whole request.
    """
    code = "AMBIGUOUS_PARENT"


class PersistenceFailure(RecurrenceError):
    """A database write failed; nothing from the enclosing operation was committed."""
    code = "PERSISTENCE_FAILURE"


def create_error_response(error: RecurrenceError) -> Dict[str, Any]:
    """
    Create a standardized error response

    Args:
        error: The RecurrenceError to convert

    Returns:
        Standardized error response dictionary
    """
    return {
        "success": False,
        "error": {
            "code": error.code,
            "message": error.message,
            "details": error.details
        }
    }
