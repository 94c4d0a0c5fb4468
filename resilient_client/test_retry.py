"""Tests for retry decisions and backoff."""

import pytest

from resilient_client import (
    NO_RETRY,
    AttemptState,
    ErrorKind,
    HTTPServerError,
    APIValidationError,
    RetryConfig,
    RetryPolicy,
    calculate_delay,
    should_retry,
)


class TestShouldRetry:
    """Retry decisions by kind, budget and idempotency."""

    @pytest.mark.parametrize("kind", [ErrorKind.NETWORK, ErrorKind.SERVER])
    def test_transient_kinds_retry(self, kind):
        decision = should_retry(kind, attempt=0, max_attempts=3, is_idempotent=True)
        assert decision.retry is True
        assert decision.delay > 0

    @pytest.mark.parametrize("kind", [ErrorKind.AUTH, ErrorKind.VALIDATION, ErrorKind.UNKNOWN])
    def test_other_kinds_never_retry(self, kind):
        decision = should_retry(kind, attempt=0, max_attempts=3, is_idempotent=True)
        assert decision.retry is False

    def test_budget_exhausted(self):
        assert should_retry(ErrorKind.SERVER, attempt=2, max_attempts=3).retry is True
        assert should_retry(ErrorKind.SERVER, attempt=3, max_attempts=3).retry is False
        assert should_retry(ErrorKind.SERVER, attempt=5, max_attempts=3).retry is False

    def test_non_idempotent_not_retried(self):
        decision = should_retry(ErrorKind.SERVER, attempt=0, max_attempts=3, is_idempotent=False)
        assert decision.retry is False

    def test_decision_is_stable(self):
        for kind in ErrorKind:
            for attempt in range(5):
                first = should_retry(kind, attempt, 3, True)
                second = should_retry(kind, attempt, 3, True)
                assert first.retry == second.retry


class TestDelay:
    """Exponential backoff with jitter."""

    def test_exponential_without_jitter(self):
        delays = [calculate_delay(attempt, 1.0, jitter=False) for attempt in (1, 2, 3)]
        assert delays == [1.0, 2.0, 4.0]

    def test_jitter_bounded_by_base_delay(self):
        for attempt in (1, 2, 3):
            expected = 2 ** (attempt - 1)
            for _ in range(50):
                delay = calculate_delay(attempt, 1.0)
                assert expected <= delay < expected + 1.0

    def test_max_delay_caps_backoff(self):
        assert calculate_delay(10, 1.0, max_delay=30.0, jitter=False) == 30.0

    def test_decision_delay_grows(self):
        delays = [
            should_retry(ErrorKind.NETWORK, attempt, 3, True, jitter=False).delay
            for attempt in range(3)
        ]
        assert delays == [1.0, 2.0, 4.0]


class TestAttemptState:
    """Attempt bookkeeping is immutable."""

    def test_next_attempt_returns_new_state(self):
        state = AttemptState()

        next_state = state.next_attempt(1.5)

        assert state.attempt == 0
        assert state.total_delay == 0.0
        assert next_state.attempt == 1
        assert next_state.total_delay == 1.5
        assert next_state.attempts_made == 2

    def test_after_refresh(self):
        state = AttemptState(attempt=2)

        refreshed = state.after_refresh()

        assert refreshed.auth_retried is True
        assert refreshed.attempt == 2
        assert state.auth_retried is False


class TestRetryPolicy:
    """Policy callbacks and overrides."""

    def test_callbacks(self):
        retried, gave_up = [], []
        policy = RetryPolicy(RetryConfig(
            max_attempts=1,
            jitter=False,
            on_retry=lambda attempt, error, delay: retried.append((attempt, delay)),
            on_give_up=gave_up.append,
        ))
        error = HTTPServerError(status_code=500)

        assert policy.decide(error, AttemptState(), True).retry is True
        assert policy.decide(error, AttemptState(attempt=1), True).retry is False

        assert retried == [(1, 1.0)]
        assert gave_up == [error]

    def test_per_call_budget_override(self):
        policy = RetryPolicy(RetryConfig(max_attempts=3))
        error = HTTPServerError(status_code=503)

        assert policy.decide(error, AttemptState(), True, max_attempts=0).retry is False

    def test_validation_gives_up(self):
        policy = RetryPolicy()
        assert policy.decide(APIValidationError(status_code=400), AttemptState(), True).retry is False

    def test_no_retry_preset(self):
        policy = RetryPolicy(NO_RETRY)
        assert policy.decide(HTTPServerError(status_code=500), AttemptState(), True).retry is False
