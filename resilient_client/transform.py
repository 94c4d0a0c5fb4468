"""Outgoing and incoming payload normalization."""

from typing import Any, NamedTuple, Optional


class APIResponse(NamedTuple):
    """Unwrapped response: application data and pagination metadata kept apart."""

    data: Any
    meta: Optional[Any] = None


def prepare_outgoing(body: Any) -> Any:
    """Return a copy of ``body`` with ``None``-valued object keys removed.

    Dicts are cleaned recursively, including dicts nested inside lists. Lists
    keep their ``None`` items and primitives pass through unchanged. The input
    is never mutated.
    """
    if isinstance(body, dict):
        return {
            key: prepare_outgoing(value)
            for key, value in body.items()
            if value is not None
        }
    if isinstance(body, list):
        return [prepare_outgoing(item) for item in body]
    if isinstance(body, tuple):
        return tuple(prepare_outgoing(item) for item in body)
    return body


def unwrap_incoming(raw: Any) -> APIResponse:
    """Split a ``{data, meta}`` envelope into an :class:`APIResponse`.

    Payloads without a ``data`` key are treated as bare data with no meta.
    """
    if isinstance(raw, dict) and "data" in raw:
        return APIResponse(data=raw["data"], meta=raw.get("meta"))
    return APIResponse(data=raw, meta=None)
