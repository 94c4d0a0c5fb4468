"""Classified API client exceptions."""

import logging
from enum import Enum
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    """Fixed taxonomy every client failure is mapped onto."""

    NETWORK = "NETWORK"
    AUTH = "AUTH"
    VALIDATION = "VALIDATION"
    SERVER = "SERVER"
    UNKNOWN = "UNKNOWN"


DEFAULT_MESSAGES = {
    ErrorKind.NETWORK: "Unable to connect to the server. Please check your internet connection.",
    ErrorKind.AUTH: "Authentication required. Please log in.",
    ErrorKind.VALIDATION: "Invalid data provided. Please check your input.",
    ErrorKind.SERVER: "An unexpected error occurred. Please try again later.",
    ErrorKind.UNKNOWN: "Something went wrong. Please try again.",
}


class APIError(Exception):
    """Base exception for all classified API errors.

    Every failure the client surfaces is an ``APIError`` (or subclass) whose
    ``kind`` is one of :class:`ErrorKind`. Raw transport exceptions are kept on
    ``cause`` and never reach the caller directly.
    """

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(
        self,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
        kind: Optional[ErrorKind] = None,
        **context
    ):
        """
        Initialize API error with classification and context.

        Args:
            message (Optional[str]): Primary error message, defaults per kind
            status_code (Optional[int]): HTTP status, or a sentinel for timeouts
            details (Optional[Dict[str, Any]]): Field-level error detail
            cause (Optional[BaseException]): Original exception, if any
            kind (Optional[ErrorKind]): Overrides the class-level kind
            **context: Request context (request_method, request_url, attempts, ...)
        """
        if kind is not None:
            self.kind = ErrorKind(kind)
        self.message = message or DEFAULT_MESSAGES[self.kind]
        self.status_code = status_code
        self.details = details
        self.cause = cause
        self.context = context

        logger.debug(
            f"{self.__class__.__name__}[{self.kind.value}]: {self.message}"
            + (f" | Context: {context}" if context else "")
        )

        super().__init__(self.message)

    @property
    def request_method(self) -> Optional[str]:
        return self.context.get("request_method")

    @property
    def request_url(self) -> Optional[str]:
        return self.context.get("request_url")

    @property
    def attempts(self) -> Optional[int]:
        return self.context.get("attempts")

    def is_kind(self, kind: ErrorKind) -> bool:
        """Check whether this error belongs to the given kind."""
        return self.kind == ErrorKind(kind)

    def to_dict(self) -> Dict[str, Any]:
        """Serializable view of the error for logs and UI layers."""
        return {
            "error_type": self.__class__.__name__,
            "kind": self.kind.value,
            "message": self.message,
            "status_code": self.status_code,
            "details": self.details,
            **self.context,
        }

    def __str__(self) -> str:
        parts = [self.message]
        if self.status_code is not None:
            parts.append(f"Status: {self.status_code}")
        if self.request_method and self.request_url:
            parts.append(f"Request: {self.request_method} {self.request_url}")
        if self.attempts:
            parts.append(f"Attempts: {self.attempts}")
        return " | ".join(parts)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(kind={self.kind.value!r}, "
            f"status_code={self.status_code!r}, message={self.message!r})"
        )


class NetworkError(APIError):
    """Raised when no response was received from the server."""
    kind = ErrorKind.NETWORK


class APITimeoutError(NetworkError):
    """Raised when a transport attempt exceeded its timeout."""

    def __init__(self, message: Optional[str] = None, timeout_type: str = "unknown", **kwargs):
        self.timeout_type = timeout_type
        super().__init__(message, **kwargs)


class APIAuthenticationError(APIError):
    """Raised for 401/403 responses and failed credential refreshes."""
    kind = ErrorKind.AUTH


class APIValidationError(APIError):
    """Raised when the server rejects the request payload (400/422)."""
    kind = ErrorKind.VALIDATION

    @property
    def validation_errors(self) -> Dict[str, Any]:
        return self.details or {}


class HTTPServerError(APIError):
    """Raised for 5xx responses."""
    kind = ErrorKind.SERVER


class UnknownAPIError(APIError):
    """Raised for anything the taxonomy has no better place for."""
    kind = ErrorKind.UNKNOWN


ERROR_CLASSES = {
    ErrorKind.NETWORK: NetworkError,
    ErrorKind.AUTH: APIAuthenticationError,
    ErrorKind.VALIDATION: APIValidationError,
    ErrorKind.SERVER: HTTPServerError,
    ErrorKind.UNKNOWN: UnknownAPIError,
}


def error_for_kind(kind: ErrorKind, message: Optional[str] = None, **kwargs) -> APIError:
    """
    Build the exception class that matches an error kind.

    Args:
        kind (ErrorKind): Classified kind
        message (Optional[str]): Error message
        **kwargs: Status code, details, cause and context

    Returns:
        APIError: Exception instance for the kind
    """
    return ERROR_CLASSES[ErrorKind(kind)](message, **kwargs)
