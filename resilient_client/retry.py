"""Retry decisions with exponential backoff and jitter."""

import random
from dataclasses import dataclass, replace
from typing import Callable, NamedTuple, Optional

from .exceptions import APIError, ErrorKind

TRANSIENT_KINDS = frozenset({ErrorKind.NETWORK, ErrorKind.SERVER})


@dataclass(frozen=True)
class RetryConfig:
    """Configuration for retry behavior with exponential backoff."""

    # Additional attempts beyond the first one
    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0

    # Random jitter in [0, base_delay) to avoid thundering herd
    jitter: bool = True

    # Callbacks for monitoring
    on_retry: Optional[Callable[[int, APIError, float], None]] = None
    on_give_up: Optional[Callable[[APIError], None]] = None


class RetryDecision(NamedTuple):
    retry: bool
    delay: float = 0.0


NO_RETRY_DECISION = RetryDecision(retry=False, delay=0.0)


def calculate_delay(
    attempt: int,
    base_delay: float = 1.0,
    max_delay: Optional[float] = None,
    jitter: bool = True,
) -> float:
    """
    Delay before retry number ``attempt`` (1-based).

    Exponential backoff: base_delay * 2 ^ (attempt - 1), capped at
    ``max_delay``, plus uniform jitter in [0, base_delay).
    """
    delay = base_delay * (2 ** (attempt - 1))
    if max_delay is not None:
        delay = min(delay, max_delay)
    if jitter and base_delay > 0:
        delay += random.uniform(0, base_delay)
    return delay


def should_retry(
    kind: ErrorKind,
    attempt: int,
    max_attempts: int = 3,
    is_idempotent: bool = True,
    base_delay: float = 1.0,
    max_delay: Optional[float] = None,
    jitter: bool = True,
) -> RetryDecision:
    """
    Decide whether a failed attempt is retried and after how long.

    Args:
        kind (ErrorKind): Classified kind of the failure
        attempt (int): Retries already performed for this call
        max_attempts (int): Retry budget beyond the first attempt
        is_idempotent (bool): Whether resubmitting the request is safe
        base_delay (float): Backoff base in seconds
        max_delay (Optional[float]): Cap applied before jitter
        jitter (bool): Add random jitter to the delay

    Returns:
        RetryDecision: ``retry`` flag and ``delay`` in seconds
    """
    if attempt >= max_attempts:
        return NO_RETRY_DECISION

    # AUTH goes through the refresh flow; VALIDATION and UNKNOWN cannot succeed on resubmission
    if ErrorKind(kind) not in TRANSIENT_KINDS:
        return NO_RETRY_DECISION

    if not is_idempotent:
        return NO_RETRY_DECISION

    return RetryDecision(
        retry=True,
        delay=calculate_delay(attempt + 1, base_delay, max_delay, jitter),
    )


@dataclass(frozen=True)
class AttemptState:
    """Immutable retry bookkeeping for one logical call."""

    attempt: int = 0
    total_delay: float = 0.0
    auth_retried: bool = False

    @property
    def attempts_made(self) -> int:
        return self.attempt + 1

    def next_attempt(self, delay: float) -> "AttemptState":
        return replace(self, attempt=self.attempt + 1, total_delay=self.total_delay + delay)

    def after_refresh(self) -> "AttemptState":
        return replace(self, auth_retried=True)


class RetryPolicy:
    """Binds a :class:`RetryConfig` to :func:`should_retry`."""

    def __init__(self, config: Optional[RetryConfig] = None):
        self.config = config or RetryConfig()

    def decide(
        self,
        error: APIError,
        state: AttemptState,
        is_idempotent: bool,
        max_attempts: Optional[int] = None,
    ) -> RetryDecision:
        budget = self.config.max_attempts if max_attempts is None else max_attempts
        decision = should_retry(
            error.kind,
            state.attempt,
            budget,
            is_idempotent,
            base_delay=self.config.base_delay,
            max_delay=self.config.max_delay,
            jitter=self.config.jitter,
        )

        if decision.retry:
            if self.config.on_retry:
                self.config.on_retry(state.attempt + 1, error, decision.delay)
        elif self.config.on_give_up:
            self.config.on_give_up(error)

        return decision


# Preset retry configurations for common scenarios

DEFAULT_RETRY = RetryConfig()

AGGRESSIVE_RETRY = RetryConfig(
    max_attempts=5,
    base_delay=0.5,
    max_delay=30.0,
)

NO_RETRY = RetryConfig(
    max_attempts=0,
)
