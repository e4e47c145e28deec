"""
Custom exceptions for the translator client.

Provides specific exception types for the client's error taxonomy:
authentication, validation, quota, transport/server and job admission.
"""

from typing import Any


class TranslatorClientError(Exception):
    """Base exception for all translator client errors."""

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Error message
            error_code: Optional error code for categorization
            details: Optional additional error details
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}


class AuthenticationRequiredError(TranslatorClientError):
    """Raised when an authenticated call was rejected; the session is already gone."""

    def __init__(self, message: str = "Session expired. Please sign in again.") -> None:
        super().__init__(message, "AUTHENTICATION_REQUIRED")


class InvalidCredentialsError(TranslatorClientError):
    """Raised when sign-in is rejected."""

    def __init__(self, message: str = "Invalid email or password") -> None:
        super().__init__(message, "INVALID_CREDENTIALS")


class ValidationError(TranslatorClientError):
    """Raised when input fails client-side or server-side validation."""

    def __init__(self, message: str, field: str | None = None) -> None:
        """Initialize validation error.

        Args:
            message: Error message
            field: Name of the offending form field, if known
        """
        details = {}
        if field:
            details["field"] = field
        super().__init__(message, "VALIDATION_ERROR", details)
        self.field = field


class DuplicateAccountError(TranslatorClientError):
    """Raised when sign-up targets an email that already has an account."""

    def __init__(self, message: str = "An account with this email already exists") -> None:
        super().__init__(message, "DUPLICATE_ACCOUNT")


class QuotaExceededError(TranslatorClientError):
    """Raised when the translation quota is exhausted (locally or by the server)."""

    def __init__(
        self,
        message: str = "Translation limit reached. Please upgrade your subscription.",
        used: int | None = None,
        limit: float | None = None,
    ) -> None:
        details: dict[str, Any] = {}
        if used is not None:
            details["used"] = used
        if limit is not None:
            details["limit"] = limit
        super().__init__(message, "QUOTA_EXCEEDED", details)


class APIError(TranslatorClientError):
    """Raised when the server answers with a non-2xx status."""

    def __init__(
        self,
        message: str,
        status_code: int,
        url: str | None = None,
    ) -> None:
        """Initialize API error.

        Args:
            message: Error message, the server's detail when available
            status_code: HTTP status code
            url: Request URL
        """
        details: dict[str, Any] = {"status_code": status_code}
        if url:
            details["url"] = url
        super().__init__(message, "API_ERROR", details)
        self.status_code = status_code
        self.url = url


class TransportError(TranslatorClientError):
    """Raised when a request never produced a response."""

    def __init__(self, message: str, url: str | None = None) -> None:
        details = {}
        if url:
            details["url"] = url
        super().__init__(message, "TRANSPORT_ERROR", details)
        self.url = url


class FileValidationError(ValidationError):
    """Raised when a selected file is missing or has an unaccepted type."""

    def __init__(self, message: str) -> None:
        super().__init__(message, field="file")


class JobInProgressError(TranslatorClientError):
    """Raised when a second job is started while one is active."""

    def __init__(self, message: str = "A translation is already in progress") -> None:
        super().__init__(message, "JOB_IN_PROGRESS")


class PaymentError(TranslatorClientError):
    """Raised when payment initiation or verification fails."""

    def __init__(self, message: str, tier: str | None = None) -> None:
        details = {}
        if tier:
            details["tier"] = tier
        super().__init__(message, "PAYMENT_ERROR", details)
        self.tier = tier
