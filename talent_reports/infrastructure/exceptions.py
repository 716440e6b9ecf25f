"""
Custom exception classes for the report scoring engine.

Provides structured error handling with user-friendly messages so the API
layer can translate failures into responses without inspecting message text.
"""

from __future__ import annotations

from typing import Any, Literal


class TalentReportsError(Exception):
    """Base exception for all application errors."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        user_message: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.user_message = user_message or self._get_default_user_message()

    def _get_default_user_message(self) -> str:
        """Provide a user-friendly version of the error message."""
        return "An unexpected error occurred. Please try again."

    def __str__(self) -> str:
        return f"{self.__class__.__name__}: {self.message}"


class NotFoundError(TalentReportsError):
    """Raised when an entity a report depends on cannot be resolved."""

    def __init__(
        self,
        message: str,
        entity: str,
        entity_id: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(
            message=message,
            details=details or {"entity": entity, "entity_id": entity_id},
        )

    def _get_default_user_message(self) -> str:
        return f"The requested {self.entity} could not be found."


class AssignmentNotFoundError(NotFoundError):
    """Raised when an assignment does not exist."""

    def __init__(self, assignment_id: str):
        super().__init__(
            message=f"Assignment with ID {assignment_id} not found",
            entity="assignment",
            entity_id=assignment_id,
        )


class TargetNotFoundError(NotFoundError):
    """Raised when a 360 assignment has no target, or the target profile is unknown."""

    def __init__(self, assignment_id: str, target_id: str | None = None):
        if target_id is None:
            message = f"Assignment {assignment_id} has no target and is invalid for a 360 report"
        else:
            message = f"Target profile {target_id} for assignment {assignment_id} not found"
        super().__init__(
            message=message,
            entity="target",
            entity_id=target_id,
            details={"assignment_id": assignment_id, "target_id": target_id},
        )


class GroupNotFoundError(NotFoundError):
    """Raised when no group designates the 360 target."""

    def __init__(self, target_id: str):
        super().__init__(
            message=f"Group not found for 360 target {target_id}",
            entity="group",
            entity_id=None,
            details={"target_id": target_id},
        )


InvalidAssessmentReason = Literal["wrong_composer", "no_dimensions", "no_top_level_dimensions"]


class InvalidAssessmentError(TalentReportsError):
    """Raised when an assessment cannot be composed by the invoked composer."""

    def __init__(
        self,
        message: str,
        reason: InvalidAssessmentReason,
        assessment_id: str | None = None,
    ):
        self.reason = reason
        self.assessment_id = assessment_id
        super().__init__(
            message=message,
            details={"reason": reason, "assessment_id": assessment_id},
            user_message=message,
        )

    @classmethod
    def wrong_composer(cls, assessment_id: str, is_360: bool) -> InvalidAssessmentError:
        if is_360:
            message = "This is a 360 assessment. Use the 360 report composer instead."
        else:
            message = "This is not a 360 assessment. Use the Leader/Blocker composer instead."
        return cls(message, reason="wrong_composer", assessment_id=assessment_id)

    @classmethod
    def no_dimensions(cls, assessment_id: str) -> InvalidAssessmentError:
        return cls(
            "This assessment has no dimensions configured. "
            "Please add dimensions to the assessment before generating a report.",
            reason="no_dimensions",
            assessment_id=assessment_id,
        )

    @classmethod
    def no_top_level_dimensions(cls, assessment_id: str) -> InvalidAssessmentError:
        return cls(
            "This assessment has dimensions but no top-level (parent) dimensions. "
            "Reports require at least one top-level dimension.",
            reason="no_top_level_dimensions",
            assessment_id=assessment_id,
        )


class DatabaseError(TalentReportsError):
    """Raised when a read against the data store fails."""

    def __init__(self, message: str, operation: str, details: dict[str, Any] | None = None):
        self.operation = operation
        super().__init__(
            message=f"Database error during {operation}: {message}",
            details=details or {"operation": operation},
        )

    def _get_default_user_message(self) -> str:
        return "A database error occurred. Please try again in a moment."


class ConnectionError(DatabaseError):
    """Raised when database connection fails."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message=message, operation="connection", details=details)

    def _get_default_user_message(self) -> str:
        return "Unable to connect to the database. Please check your connection and try again."


def handle_database_error(e: Exception, operation: str = "database operation") -> DatabaseError:
    """
    Convert generic database exceptions to application exceptions.

    Args:
        e: The original exception
        operation: Description of the operation that failed

    Returns:
        Appropriate DatabaseError subclass

    Example:
        >>> try:
        ...     session.execute(stmt)
        >>> except SQLAlchemyError as e:
        ...     raise handle_database_error(e, "find_dimension_scores") from e
    """
    error_msg = str(e).lower()

    if "connection" in error_msg or "timeout" in error_msg:
        return ConnectionError(str(e), details={"operation": operation})
    return DatabaseError(str(e), operation)


def log_error_details(error: Exception, context: dict[str, Any] | None = None) -> dict[str, Any]:
    """
    Create structured error details for logging.

    Args:
        error: The exception to log
        context: Additional context information

    Returns:
        Dictionary with structured error details
    """
    details = {
        "error_type": type(error).__name__,
        "error_message": str(error),
        "context": context or {},
    }

    if isinstance(error, TalentReportsError):
        details.update({"user_message": error.user_message, "error_details": error.details})

    return details
