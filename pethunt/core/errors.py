"""
Pet Hunt Engine - Custom Error Types
Structured exceptions for hunting and progression errors with recovery hints.
"""
from typing import Dict, Any, Optional
from enum import Enum


class ErrorCode(str, Enum):
    """Standard error codes for the hunt engine."""
    # General errors
    UNKNOWN = "UNKNOWN"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    FORBIDDEN = "FORBIDDEN"

    # Hunt errors
    INVALID_STATE = "INVALID_STATE"
    ALREADY_CAUGHT = "ALREADY_CAUGHT"
    INSUFFICIENT_RESOURCE = "INSUFFICIENT_RESOURCE"

    # Infrastructure errors
    STORAGE_ERROR = "STORAGE_ERROR"
    CONFIG_ERROR = "CONFIG_ERROR"


class GameError(Exception):
    """
    Base exception for all game-related errors.

    Provides structured error information with:
    - Error code for programmatic handling
    - Human-readable message
    - Additional context details
    - Recovery hints for the client
    """

    def __init__(
        self,
        code: ErrorCode = ErrorCode.UNKNOWN,
        message: str = "An unexpected error occurred",
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = True,
        recovery_hint: Optional[str] = None,
        http_status: int = 500
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable
        self.recovery_hint = recovery_hint
        self.http_status = http_status

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for JSON response."""
        return {
            "error": {
                "code": self.code.value,
                "message": self.message,
                "details": self.details,
                "recoverable": self.recoverable,
                "recovery_hint": self.recovery_hint
            }
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code.value}, message={self.message!r})"


# =============================================================================
# Lookup / Ownership Errors
# =============================================================================

class NotFoundError(GameError):
    """Raised when a session, encounter, region, or pet is absent."""

    def __init__(
        self,
        resource: str,
        identifier: Optional[str] = None,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        payload = {"resource": resource}
        if identifier:
            payload["identifier"] = identifier
        if details:
            payload.update(details)
        super().__init__(
            code=ErrorCode.NOT_FOUND,
            message=message or f"{resource} not found",
            details=payload,
            http_status=404
        )


class ConflictError(GameError):
    """Raised when an operation would create a duplicate or race another writer."""

    def __init__(self, message: str = "Conflicting operation", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            code=ErrorCode.CONFLICT,
            message=message,
            details=details,
            http_status=409,
            recovery_hint="Finish or flee your current hunt before starting another"
        )


class ForbiddenError(GameError):
    """Raised when the owner does not meet a level gate."""

    def __init__(self, message: str = "You don't meet the requirements for this action", **details):
        super().__init__(
            code=ErrorCode.FORBIDDEN,
            message=message,
            details=details,
            http_status=403,
            recovery_hint="Level up your account to unlock this region"
        )


# =============================================================================
# Hunt Errors
# =============================================================================

class InvalidStateError(GameError):
    """Raised when an action targets a session or encounter in the wrong state."""

    def __init__(self, message: str = "Action not allowed in the current state", **details):
        super().__init__(
            code=ErrorCode.INVALID_STATE,
            message=message,
            details=details,
            http_status=409,
        )


class AlreadyCaughtError(GameError):
    """Raised when a capture targets an encounter that was already caught."""

    def __init__(self, encounter_id: str):
        super().__init__(
            code=ErrorCode.ALREADY_CAUGHT,
            message="This pet has already been caught",
            details={"encounter_id": encounter_id},
            http_status=409,
            recovery_hint="Keep moving to find another encounter"
        )


class InsufficientResourceError(GameError):
    """Raised when a ticket, capture tool, item, or storage slot is missing."""

    def __init__(self, resource_name: str, available: int = 0, required: int = 1):
        super().__init__(
            code=ErrorCode.INSUFFICIENT_RESOURCE,
            message=f"Not enough {resource_name}",
            details={
                "resource": resource_name,
                "available": available,
                "required": required
            },
            http_status=402,
            recovery_hint=f"Obtain more {resource_name} and try again"
        )


# =============================================================================
# Infrastructure Errors
# =============================================================================

class StorageError(GameError):
    """Raised when the persistence dependency fails. Never retried internally."""

    def __init__(self, message: str = "Storage operation failed", operation: Optional[str] = None):
        details = {}
        if operation:
            details["operation"] = operation
        super().__init__(
            code=ErrorCode.STORAGE_ERROR,
            message=message,
            details=details,
            http_status=500,
            recoverable=False,
            recovery_hint="Please try again later"
        )


class ConfigError(GameError):
    """Raised while loading malformed static game data. Startup only."""

    def __init__(self, message: str, source: Optional[str] = None):
        details = {}
        if source:
            details["source"] = source
        super().__init__(
            code=ErrorCode.CONFIG_ERROR,
            message=message,
            details=details,
            http_status=500,
            recoverable=False
        )


# =============================================================================
# Validation Error
# =============================================================================

class ValidationError(GameError):
    """Input validation errors."""

    def __init__(self, field: str, message: str, value: Any = None):
        details = {"field": field}
        if value is not None:
            details["value"] = str(value)
        super().__init__(
            code=ErrorCode.VALIDATION_ERROR,
            message=message,
            details=details,
            http_status=400,
            recovery_hint=f"Check the value for '{field}'"
        )
