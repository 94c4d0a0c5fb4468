"""Resilient REST API client with auth refresh, retry logic and error classification."""

from .client import APIClient
from .config import APIConfig, ClientSettings
from .auth import (
    AuthCoordinator,
    AuthState,
    Credential,
    CredentialStore,
    JSONFileCredentialStore,
    MemoryCredentialStore,
)
from .classifier import (
    TIMEOUT_STATUS,
    classify,
    classify_exception,
    classify_response,
    kind_for_status,
)
from .executor import RequestDescriptor, RequestExecutor, RequestOptions
from .logging_config import JsonFormatter, setup_logging
from .resources import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, PageMeta, ResourceEndpoint
from .retry import (
    AttemptState,
    RetryConfig,
    RetryDecision,
    RetryPolicy,
    calculate_delay,
    should_retry,
    DEFAULT_RETRY,
    AGGRESSIVE_RETRY,
    NO_RETRY,
)
from .transform import APIResponse, prepare_outgoing, unwrap_incoming
from .exceptions import (
    ErrorKind,
    APIError,
    NetworkError,
    APITimeoutError,
    APIAuthenticationError,
    APIValidationError,
    HTTPServerError,
    UnknownAPIError,
    error_for_kind,
)

__all__ = [
    # Client
    "APIClient",
    "APIConfig",
    "ClientSettings",
    "RequestDescriptor",
    "RequestExecutor",
    "RequestOptions",
    "ResourceEndpoint",
    "PageMeta",
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",

    # Auth
    "AuthCoordinator",
    "AuthState",
    "Credential",
    "CredentialStore",
    "JSONFileCredentialStore",
    "MemoryCredentialStore",

    # Payloads
    "APIResponse",
    "prepare_outgoing",
    "unwrap_incoming",

    # Retry
    "AttemptState",
    "RetryConfig",
    "RetryDecision",
    "RetryPolicy",
    "calculate_delay",
    "should_retry",
    "DEFAULT_RETRY",
    "AGGRESSIVE_RETRY",
    "NO_RETRY",

    # Errors
    "ErrorKind",
    "APIError",
    "NetworkError",
    "APITimeoutError",
    "APIAuthenticationError",
    "APIValidationError",
    "HTTPServerError",
    "UnknownAPIError",
    "error_for_kind",
    "TIMEOUT_STATUS",
    "classify",
    "classify_exception",
    "classify_response",
    "kind_for_status",

    # Logging
    "JsonFormatter",
    "setup_logging",
]
