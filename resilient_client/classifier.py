"""Map transport failures and HTTP error responses onto the error taxonomy."""

from typing import Any, Dict, Optional

import httpx

from .exceptions import (
    APIError,
    APITimeoutError,
    ErrorKind,
    NetworkError,
    error_for_kind,
)

# Status sentinel for timeouts; other network failures carry no status at all.
TIMEOUT_STATUS = 0

AUTH_STATUSES = frozenset({401, 403})
VALIDATION_STATUSES = frozenset({400, 422})


def kind_for_status(status_code: Optional[int]) -> ErrorKind:
    """Classify a status code, ``None`` meaning no response was received."""
    if status_code is None or status_code == TIMEOUT_STATUS:
        return ErrorKind.NETWORK
    if status_code in AUTH_STATUSES:
        return ErrorKind.AUTH
    if status_code in VALIDATION_STATUSES:
        return ErrorKind.VALIDATION
    if status_code >= 500:
        return ErrorKind.SERVER
    return ErrorKind.UNKNOWN


def _read_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text or None


def _server_message(body: Any) -> Optional[str]:
    if isinstance(body, dict):
        for key in ("message", "error"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    return None


def _validation_details(body: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(body, dict):
        return None
    for key in ("errors", "detail"):
        if key in body:
            value = body[key]
            return value if isinstance(value, dict) else {key: value}
    return body


def classify_response(response: httpx.Response, **context) -> APIError:
    """
    Convert a non-success HTTP response into a classified error.

    Args:
        response (httpx.Response): Response with a non-2xx status
        **context: Request context attached to the error

    Returns:
        APIError: Classified error for the status
    """
    status = response.status_code
    kind = kind_for_status(status)
    body = _read_body(response)

    details = None
    if kind is ErrorKind.VALIDATION:
        details = _validation_details(body)
    elif isinstance(body, dict):
        details = body

    return error_for_kind(
        kind,
        _server_message(body),
        status_code=status,
        details=details,
        **context
    )


def classify_exception(exception: BaseException, **context) -> APIError:
    """
    Convert an exception raised by the transport into a classified error.

    Exceptions that carry a response (``httpx.HTTPStatusError``) are classified
    by status; everything else means no response arrived and is ``NETWORK``.

    Args:
        exception (BaseException): Exception raised during the transport call
        **context: Request context attached to the error

    Returns:
        APIError: Classified error
    """
    if isinstance(exception, APIError):
        return exception

    if isinstance(exception, httpx.HTTPStatusError):
        return classify_response(exception.response, cause=exception, **context)

    if isinstance(exception, httpx.TimeoutException):
        timeout_type = "unknown"
        if isinstance(exception, httpx.ConnectTimeout):
            timeout_type = "connect"
        elif isinstance(exception, httpx.ReadTimeout):
            timeout_type = "read"
        elif isinstance(exception, httpx.WriteTimeout):
            timeout_type = "write"
        elif isinstance(exception, httpx.PoolTimeout):
            timeout_type = "pool"

        return APITimeoutError(
            f"Request timed out ({timeout_type})",
            timeout_type=timeout_type,
            status_code=TIMEOUT_STATUS,
            cause=exception,
            **context
        )

    message = None
    if isinstance(exception, httpx.ConnectError):
        message = "Unable to connect to the server"

    return NetworkError(message, cause=exception, **context)


def classify(
    exception: Optional[BaseException] = None,
    response: Optional[httpx.Response] = None,
    **context
) -> APIError:
    """Classify whichever of ``response`` or ``exception`` describes the failure."""
    if response is not None:
        return classify_response(response, cause=exception, **context)
    if exception is not None:
        return classify_exception(exception, **context)
    return NetworkError(**context)
