"""
Tests for retry policies and polling loops.
"""

import random
import threading
import time
from unittest.mock import Mock

import pytest

from cloudformation.exceptions import DeploymentCancelledError
from cloudformation.retry import (
    ExponentialBackoffPolicy,
    FixedIntervalPolicy,
    PollExhaustedError,
    RetryableCondition,
    RetryCeilingExceeded,
    RetryErrorLimitExceeded,
    StopPolling,
    pause,
    poll_fixed,
    retry_with_backoff,
)


class TestFixedIntervalPolicy:
    """Test FixedIntervalPolicy."""

    def test_defaults(self) -> None:
        """Test the change-set polling defaults."""
        policy = FixedIntervalPolicy()
        assert policy.interval == 5.0
        assert policy.max_attempts == 12
        assert policy.ceiling == 60.0

    def test_invalid_values(self) -> None:
        with pytest.raises(ValueError):
            FixedIntervalPolicy(max_attempts=0)
        with pytest.raises(ValueError):
            FixedIntervalPolicy(interval=-1)

    def test_dict_round_trip(self) -> None:
        policy = FixedIntervalPolicy(interval=2, max_attempts=3)
        assert FixedIntervalPolicy.from_dict(policy.to_dict()) == policy


class TestExponentialBackoffPolicy:
    """Test ExponentialBackoffPolicy."""

    def test_defaults(self) -> None:
        """Test the convergence defaults."""
        policy = ExponentialBackoffPolicy()
        assert policy.initial_interval == 12.0
        assert policy.multiplier == 1.5
        assert policy.max_interval == 60.0
        assert policy.randomization_factor == 0.5
        assert policy.max_elapsed == 600.0
        assert policy.max_consecutive_errors is None

    def test_next_interval_grows_and_caps(self) -> None:
        """Test interval growth up to the cap."""
        policy = ExponentialBackoffPolicy()
        intervals = [policy.initial_interval]
        for _ in range(5):
            intervals.append(policy.next_interval(intervals[-1]))
        assert intervals == [12.0, 18.0, 27.0, 40.5, 60.0, 60.0]

    def test_randomize_within_bounds(self) -> None:
        """Test jitter stays within the randomization factor."""
        policy = ExponentialBackoffPolicy(randomization_factor=0.5)
        rng = random.Random(42)
        for _ in range(100):
            assert 6.0 <= policy.randomize(12.0, rng) <= 18.0

    def test_randomize_disabled(self) -> None:
        policy = ExponentialBackoffPolicy(randomization_factor=0)
        assert policy.randomize(12.0) == 12.0

    def test_invalid_values(self) -> None:
        with pytest.raises(ValueError):
            ExponentialBackoffPolicy(initial_interval=0)
        with pytest.raises(ValueError):
            ExponentialBackoffPolicy(multiplier=0.5)
        with pytest.raises(ValueError):
            ExponentialBackoffPolicy(randomization_factor=1.5)
        with pytest.raises(ValueError):
            ExponentialBackoffPolicy(max_interval=1)
        with pytest.raises(ValueError):
            ExponentialBackoffPolicy(max_consecutive_errors=0)


class TestPollFixed:
    """Test poll_fixed."""

    def test_returns_attempts_used(self) -> None:
        """Test polling until the condition holds."""
        sleep = Mock()
        condition = Mock(side_effect=[False, False, True])

        attempts = poll_fixed(condition, FixedIntervalPolicy(interval=5, max_attempts=12), sleep=sleep)

        assert attempts == 3
        assert sleep.call_count == 2
        sleep.assert_called_with(5)

    def test_exhausted(self) -> None:
        """Test that attempts run out without sleeping after the last one."""
        sleep = Mock()
        condition = Mock(return_value=False)

        with pytest.raises(PollExhaustedError) as exc_info:
            poll_fixed(condition, FixedIntervalPolicy(interval=5, max_attempts=4), sleep=sleep)

        assert exc_info.value.attempts == 4
        assert condition.call_count == 4
        assert sleep.call_count == 3

    def test_stop_polling(self) -> None:
        """Test that StopPolling ends the poll early."""
        sleep = Mock()
        condition = Mock(side_effect=[False, StopPolling("change set failed")])

        with pytest.raises(PollExhaustedError) as exc_info:
            poll_fixed(condition, FixedIntervalPolicy(), sleep=sleep)

        assert exc_info.value.attempts == 2
        assert exc_info.value.last_reason == "change set failed"

    def test_other_errors_propagate(self) -> None:
        condition = Mock(side_effect=KeyError("Status"))

        with pytest.raises(KeyError):
            poll_fixed(condition, FixedIntervalPolicy(), sleep=Mock())

    def test_cancelled(self) -> None:
        """Test that a set event stops polling before the first attempt."""
        event = threading.Event()
        event.set()
        condition = Mock(return_value=True)

        with pytest.raises(DeploymentCancelledError):
            poll_fixed(condition, FixedIntervalPolicy(), cancel_event=event)

        condition.assert_not_called()


class TestRetryWithBackoff:
    """Test retry_with_backoff."""

    @staticmethod
    def policy(**kwargs) -> ExponentialBackoffPolicy:
        return ExponentialBackoffPolicy(randomization_factor=0, **kwargs)

    def test_returns_result(self, clock) -> None:
        """Test retrying until the operation succeeds."""
        operation = Mock(
            side_effect=[RetryableCondition("busy"), RetryableCondition("busy"), "done"]
        )

        result = retry_with_backoff(operation, self.policy(), clock=clock, sleep=clock.sleep)

        assert result == "done"
        assert clock.sleeps == [12.0, 18.0]

    def test_ceiling(self, clock) -> None:
        """Test that the loop stops before passing the ceiling."""
        operation = Mock(side_effect=RetryableCondition("busy"))

        with pytest.raises(RetryCeilingExceeded) as exc_info:
            retry_with_backoff(
                operation, self.policy(max_elapsed=60), clock=clock, sleep=clock.sleep
            )

        assert exc_info.value.ceiling == 60
        assert exc_info.value.last_reason == "busy"
        # 12 + 18 = 30; a further 27 fits, 40.5 more would not
        assert clock.sleeps == [12.0, 18.0, 27.0]
        assert operation.call_count == 4

    def test_started_at_counts_against_ceiling(self, clock) -> None:
        """Test measuring the ceiling from an earlier start."""
        clock.now = 100.0
        operation = Mock(side_effect=RetryableCondition("busy"))

        with pytest.raises(RetryCeilingExceeded):
            retry_with_backoff(
                operation,
                self.policy(max_elapsed=60),
                clock=clock,
                sleep=clock.sleep,
                started_at=50.0,
            )

        assert operation.call_count == 1
        assert clock.sleeps == []

    def test_fatal_errors_propagate(self, clock) -> None:
        """Test that non-retryable errors are not retried."""
        operation = Mock(side_effect=ValueError("boom"))

        with pytest.raises(ValueError):
            retry_with_backoff(operation, self.policy(), clock=clock, sleep=clock.sleep)

        assert operation.call_count == 1

    def test_consecutive_error_limit(self, clock) -> None:
        """Test giving up after consecutive query errors."""
        operation = Mock(side_effect=RetryableCondition("throttled", query_error=True))

        with pytest.raises(RetryErrorLimitExceeded) as exc_info:
            retry_with_backoff(
                operation,
                self.policy(max_consecutive_errors=3),
                clock=clock,
                sleep=clock.sleep,
            )

        assert exc_info.value.errors == 3
        assert operation.call_count == 3

    def test_error_count_resets(self, clock) -> None:
        """Test that a non-error retry resets the consecutive error count."""
        operation = Mock(
            side_effect=[
                RetryableCondition("throttled", query_error=True),
                RetryableCondition("busy"),
                RetryableCondition("throttled", query_error=True),
                "done",
            ]
        )

        result = retry_with_backoff(
            operation,
            self.policy(max_consecutive_errors=2),
            clock=clock,
            sleep=clock.sleep,
        )

        assert result == "done"

    def test_cancelled(self, clock) -> None:
        event = threading.Event()
        event.set()
        operation = Mock(return_value="done")

        with pytest.raises(DeploymentCancelledError):
            retry_with_backoff(operation, self.policy(), cancel_event=event, clock=clock)

        operation.assert_not_called()


class TestPause:
    """Test pause."""

    def test_uses_sleep_without_event(self) -> None:
        sleep = Mock()
        pause(3.0, sleep)
        sleep.assert_called_once_with(3.0)

    def test_event_not_set(self) -> None:
        pause(0, cancel_event=threading.Event())

    def test_event_set(self) -> None:
        event = threading.Event()
        event.set()
        with pytest.raises(DeploymentCancelledError):
            pause(30.0, cancel_event=event)

    def test_event_set_while_waiting(self) -> None:
        """Test setting the event from another thread ends a long wait early."""
        event = threading.Event()
        timer = threading.Timer(0.05, event.set)
        started = time.monotonic()
        timer.start()

        try:
            with pytest.raises(DeploymentCancelledError):
                pause(30.0, cancel_event=event)
        finally:
            timer.cancel()

        assert time.monotonic() - started < 5
