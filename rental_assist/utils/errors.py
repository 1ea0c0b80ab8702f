"""Error handling utilities for the rental assistance wizard."""

from dataclasses import dataclass
from typing import Optional, Dict, Any, List
from enum import Enum


class ErrorType(Enum):
    """Enumeration of error types in the rental assistance wizard."""

    # Generator (Bedrock) errors
    GENERATOR_RATE_LIMIT = "GENERATOR_RATE_LIMIT"
    GENERATOR_TIMEOUT = "GENERATOR_TIMEOUT"
    GENERATOR_AUTH_ERROR = "GENERATOR_AUTH_ERROR"
    GENERATOR_MODEL_ERROR = "GENERATOR_MODEL_ERROR"
    GENERATOR_INVALID_REQUEST = "GENERATOR_INVALID_REQUEST"
    GENERATOR_SERVICE_ERROR = "GENERATOR_SERVICE_ERROR"

    # Form specification errors
    SPEC_VALIDATION_FAILED = "SPEC_VALIDATION_FAILED"

    # Core record errors
    SECTION_VALIDATION_FAILED = "SECTION_VALIDATION_FAILED"
    APPLICATION_NOT_FOUND = "APPLICATION_NOT_FOUND"
    APPLICATION_SUBMITTED = "APPLICATION_SUBMITTED"
    APPLICATION_INCOMPLETE = "APPLICATION_INCOMPLETE"

    # Configuration errors
    CONFIG_MISSING = "CONFIG_MISSING"
    CONFIG_INVALID = "CONFIG_INVALID"


@dataclass
class ErrorContext:
    """
    Context information for errors in the wizard.

    Attributes:
        error_type: Type of error from ErrorType enum
        message: Human-readable error message
        recoverable: Whether the error can be recovered from
        fallback_action: Optional description of fallback action taken
        details: Optional additional error details
        original_exception: Optional original exception that caused this error
    """

    error_type: ErrorType
    message: str
    recoverable: bool
    fallback_action: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    original_exception: Optional[Exception] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert error context to dictionary for logging/serialization."""
        return {
            "error_type": self.error_type.value,
            "message": self.message,
            "recoverable": self.recoverable,
            "fallback_action": self.fallback_action,
            "details": self.details or {},
            "original_exception": str(self.original_exception) if self.original_exception else None
        }


class RentalAssistanceError(Exception):
    """
    Base exception for all wizard errors.

    Attributes:
        context: ErrorContext with detailed error information
    """

    def __init__(self, context: ErrorContext):
        self.context = context
        super().__init__(context.message)

    def __str__(self) -> str:
        base = f"{self.context.error_type.value}: {self.context.message}"
        if self.context.fallback_action:
            base += f" (Fallback: {self.context.fallback_action})"
        return base

    @property
    def error_type(self) -> ErrorType:
        return self.context.error_type

    def to_dict(self) -> Dict[str, Any]:
        return self.context.to_dict()


class BedrockAPIError(RentalAssistanceError):
    """Exception for AWS Bedrock API errors raised while generating questions."""

    @classmethod
    def from_client_error(
        cls,
        error: Exception,
        operation: str,
        recoverable: bool = False,
        fallback_action: Optional[str] = None
    ) -> "BedrockAPIError":
        """
        Create BedrockAPIError from boto3 ClientError.

        Args:
            error: Original boto3 ClientError
            operation: Description of operation that failed
            recoverable: Whether error is recoverable
            fallback_action: Optional fallback action description

        Returns:
            BedrockAPIError instance
        """
        error_code = "Unknown"
        error_message = str(error)
        http_status = None

        if hasattr(error, 'response'):
            error_info = error.response.get("Error", {})
            error_code = error_info.get("Code", "Unknown")
            error_message = error_info.get("Message", str(error))
            http_status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")

        error_type_map = {
            "ThrottlingException": ErrorType.GENERATOR_RATE_LIMIT,
            "TooManyRequestsException": ErrorType.GENERATOR_RATE_LIMIT,
            "RequestTimeout": ErrorType.GENERATOR_TIMEOUT,
            "RequestTimeoutException": ErrorType.GENERATOR_TIMEOUT,
            "ModelTimeoutException": ErrorType.GENERATOR_TIMEOUT,
            "UnauthorizedException": ErrorType.GENERATOR_AUTH_ERROR,
            "AccessDeniedException": ErrorType.GENERATOR_AUTH_ERROR,
            "ValidationException": ErrorType.GENERATOR_INVALID_REQUEST,
            "ModelNotReadyException": ErrorType.GENERATOR_MODEL_ERROR,
            "ServiceUnavailableException": ErrorType.GENERATOR_SERVICE_ERROR,
            "InternalServerException": ErrorType.GENERATOR_SERVICE_ERROR,
        }

        context = ErrorContext(
            error_type=error_type_map.get(error_code, ErrorType.GENERATOR_SERVICE_ERROR),
            message=f"Bedrock API error during {operation}: {error_message}",
            recoverable=recoverable,
            fallback_action=fallback_action,
            details={
                "error_code": error_code,
                "operation": operation,
                "http_status": http_status,
            },
            original_exception=error
        )

        return cls(context)

    def to_debug(self) -> Dict[str, Any]:
        """Shape used in the generation debug payload: message, code, param."""
        details = self.context.details or {}
        original = self.context.original_exception
        return {
            "message": str(original) if original else self.context.message,
            "code": details.get("error_code"),
            "param": None,
        }


class SpecValidationError(RentalAssistanceError):
    """Raised when a dynamic form specification fails structural validation."""

    def __init__(self, context: ErrorContext, issues: List[str]):
        super().__init__(context)
        self.issues = issues

    @classmethod
    def from_issues(cls, issues: List[str]) -> "SpecValidationError":
        preview = "; ".join(issues[:5])
        if len(issues) > 5:
            preview += f"; ... ({len(issues) - 5} more)"
        context = ErrorContext(
            error_type=ErrorType.SPEC_VALIDATION_FAILED,
            message=f"Form specification is invalid: {preview}",
            recoverable=True,
            fallback_action="Regenerate the questions",
            details={"issues": issues},
        )
        return cls(context, issues)


class SectionValidationError(RentalAssistanceError):
    """Raised when a core application section does not validate."""

    def __init__(self, context: ErrorContext, field_errors: Dict[str, str]):
        super().__init__(context)
        self.field_errors = field_errors

    @classmethod
    def from_pydantic(cls, section: str, error: Exception) -> "SectionValidationError":
        """
        Build from a pydantic ValidationError, keyed by dotted field path.

        Args:
            section: Name of the core section being saved
            error: pydantic.ValidationError raised by the section model

        Returns:
            SectionValidationError instance
        """
        field_errors: Dict[str, str] = {}
        for item in error.errors():
            path = ".".join(str(part) for part in item.get("loc", ())) or section
            field_errors.setdefault(path, item.get("msg", "Invalid value"))

        context = ErrorContext(
            error_type=ErrorType.SECTION_VALIDATION_FAILED,
            message=f"Section '{section}' is invalid: {len(field_errors)} field error(s)",
            recoverable=True,
            details={"section": section, "fields": field_errors},
            original_exception=error,
        )
        return cls(context, field_errors)


class ApplicationStateError(RentalAssistanceError):
    """Raised when an operation does not fit the application's lifecycle state."""

    @classmethod
    def not_found(cls, session_id: str) -> "ApplicationStateError":
        context = ErrorContext(
            error_type=ErrorType.APPLICATION_NOT_FOUND,
            message="No application found for this session",
            recoverable=True,
            fallback_action="Start a new application",
            details={"session_id": session_id},
        )
        return cls(context)

    @classmethod
    def already_submitted(cls, application_id: str) -> "ApplicationStateError":
        context = ErrorContext(
            error_type=ErrorType.APPLICATION_SUBMITTED,
            message="Application has been submitted and can no longer be changed",
            recoverable=False,
            details={"application_id": application_id},
        )
        return cls(context)

    @classmethod
    def incomplete(cls, application_id: str, missing: List[str]) -> "ApplicationStateError":
        context = ErrorContext(
            error_type=ErrorType.APPLICATION_INCOMPLETE,
            message=f"Application is missing required sections: {', '.join(missing)}",
            recoverable=True,
            fallback_action="Complete the missing sections",
            details={"application_id": application_id, "missing": missing},
        )
        return cls(context)


class ConfigurationError(RentalAssistanceError):
    """Raised when configuration cannot be loaded."""

    @classmethod
    def missing(cls, what: str) -> "ConfigurationError":
        return cls(ErrorContext(
            error_type=ErrorType.CONFIG_MISSING,
            message=f"Missing configuration: {what}",
            recoverable=False,
            details={"missing": what},
        ))

    @classmethod
    def invalid(cls, what: str, error: Optional[Exception] = None) -> "ConfigurationError":
        return cls(ErrorContext(
            error_type=ErrorType.CONFIG_INVALID,
            message=f"Invalid configuration: {what}",
            recoverable=False,
            details={"setting": what},
            original_exception=error,
        ))
