"""
Nimble Selector - Custom Error Types
Structured exceptions for the host integration layer with recovery hints.

The resolution engine itself never raises for missing data: missing tables,
unmatched names and unknown classes degrade to empty results. These errors
are raised at the edges (resource loading and the HTTP routes).
"""
from typing import Dict, Any, Optional
from enum import Enum


class ErrorCode(str, Enum):
    """Standard error codes for the selector."""
    # General errors
    UNKNOWN = "UNKNOWN"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"

    # Resource errors
    RESOURCE_UNAVAILABLE = "RESOURCE_UNAVAILABLE"
    SERVICE_NOT_READY = "SERVICE_NOT_READY"

    # Character errors
    CHARACTER_NOT_FOUND = "CHARACTER_NOT_FOUND"
    CHARACTER_NO_CLASS = "CHARACTER_NO_CLASS"


class GameError(Exception):
    """
    Base exception for all selector errors.

    Provides structured error information with:
    - Error code for programmatic handling
    - Human-readable message
    - Additional context details
    - Recovery hints for the frontend
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
# Resource Errors
# =============================================================================

class ResourceError(GameError):
    """Rule-table and catalog resource errors."""

    def __init__(
        self,
        code: ErrorCode = ErrorCode.RESOURCE_UNAVAILABLE,
        message: str = "Resource unavailable",
        **kwargs
    ):
        kwargs.setdefault("http_status", 503)
        super().__init__(code=code, message=message, **kwargs)


class ResourceLoadError(ResourceError):
    """Raised by a resource loader when a file cannot be fetched or parsed."""

    def __init__(self, path: str, reason: str = "not found"):
        super().__init__(
            code=ErrorCode.RESOURCE_UNAVAILABLE,
            message=f"Failed to load {path}: {reason}",
            details={"path": path, "reason": reason},
            recovery_hint="Check the configured data directories"
        )
        self.path = path
        self.reason = reason


class ServiceNotReadyError(ResourceError):
    """Raised when the selector is used before its data has been loaded."""

    def __init__(self, service: str = "selector"):
        super().__init__(
            code=ErrorCode.SERVICE_NOT_READY,
            message=f"The {service} is still loading",
            details={"service": service},
            recovery_hint="Please try again in a moment"
        )


# =============================================================================
# Character Errors
# =============================================================================

class CharacterError(GameError):
    """Character-related errors."""

    def __init__(
        self,
        code: ErrorCode = ErrorCode.CHARACTER_NOT_FOUND,
        message: str = "Character error",
        **kwargs
    ):
        kwargs.setdefault("http_status", 400)
        super().__init__(code=code, message=message, **kwargs)


class CharacterNotFoundError(CharacterError):
    """Raised when character is not found."""

    def __init__(self, character_id: Optional[str] = None):
        details = {}
        if character_id:
            details["character_id"] = character_id
        super().__init__(
            code=ErrorCode.CHARACTER_NOT_FOUND,
            message="Character not found",
            details=details,
            http_status=404,
            recovery_hint="Create the character first"
        )


class NoClassAssignedError(CharacterError):
    """Raised when a character has no class to resolve content for."""

    def __init__(self, character_id: Optional[str] = None):
        details = {}
        if character_id:
            details["character_id"] = character_id
        super().__init__(
            code=ErrorCode.CHARACTER_NO_CLASS,
            message="This character has no class assigned",
            details=details,
            http_status=409,
            recovery_hint="Assign a class to the character"
        )

