"""
Retry policies and the polling loops that apply them.

Two policies are used during a deployment:

* ``FixedIntervalPolicy`` - a constant delay between a small, bounded number
  of attempts. Used while a change set is being created, which normally takes
  seconds.
* ``ExponentialBackoffPolicy`` - a growing, jittered delay bounded by a
  wall-clock ceiling. Used while a stack converges after a change set is
  executed, which can take many minutes.

Policies are immutable values handed to each loop; loop state lives in a
``RetryState`` that is discarded when the loop returns.
"""

import logging
import random
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, TypeVar

from .exceptions import DeploymentCancelledError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryableCondition(Exception):
    """Raised by a polled operation to request another attempt."""

    def __init__(self, reason: str, query_error: bool = False):
        super().__init__(reason)
        self.reason = reason
        self.query_error = query_error


class StopPolling(Exception):
    """Raised by a polled condition to end a fixed-interval poll early."""


class RetryError(Exception):
    """A polling loop gave up."""

    def __init__(self, message: str, last_reason: Optional[str] = None):
        super().__init__(message)
        self.last_reason = last_reason


class PollExhaustedError(RetryError):
    """A fixed-interval poll ran out of attempts or was stopped early."""

    def __init__(self, attempts: int, last_reason: Optional[str] = None):
        super().__init__(
            f"polling stopped after {attempts} attempt(s): {last_reason}", last_reason
        )
        self.attempts = attempts


class RetryCeilingExceeded(RetryError):
    """The backoff loop hit its wall-clock ceiling."""

    def __init__(self, ceiling: float, last_reason: Optional[str] = None):
        super().__init__(f"retry ceiling of {ceiling:g}s exceeded: {last_reason}", last_reason)
        self.ceiling = ceiling


class RetryErrorLimitExceeded(RetryError):
    """Too many consecutive query errors in the backoff loop."""

    def __init__(self, errors: int, last_reason: Optional[str] = None):
        super().__init__(f"{errors} consecutive errors: {last_reason}", last_reason)
        self.errors = errors


@dataclass(frozen=True)
class FixedIntervalPolicy:
    """Constant delay between a bounded number of attempts."""

    interval: float = 5.0
    max_attempts: int = 12

    def __post_init__(self) -> None:
        if self.interval < 0:
            raise ValueError(f"interval must not be negative: {self.interval}")
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1: {self.max_attempts}")

    @property
    def ceiling(self) -> float:
        """Approximate upper bound on the time spent polling."""
        return self.interval * self.max_attempts

    def to_dict(self) -> Dict[str, Any]:
        return {"interval": self.interval, "max_attempts": self.max_attempts}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FixedIntervalPolicy":
        return cls(**data)


@dataclass(frozen=True)
class ExponentialBackoffPolicy:
    """
    Jittered exponential backoff bounded by a wall-clock ceiling.

    Attributes:
        initial_interval: First delay in seconds
        multiplier: Growth factor applied after each attempt
        max_interval: Cap on the un-jittered delay
        randomization_factor: Each delay is drawn from
            ``[interval * (1 - factor), interval * (1 + factor)]``
        max_elapsed: Ceiling in seconds, measured from the loop start
        max_consecutive_errors: Give up after this many query errors in a
            row; ``None`` retries them until the ceiling
    """

    initial_interval: float = 12.0
    multiplier: float = 1.5
    max_interval: float = 60.0
    randomization_factor: float = 0.5
    max_elapsed: float = 600.0
    max_consecutive_errors: Optional[int] = None

    def __post_init__(self) -> None:
        if self.initial_interval <= 0:
            raise ValueError(f"initial_interval must be positive: {self.initial_interval}")
        if self.multiplier < 1:
            raise ValueError(f"multiplier must be at least 1: {self.multiplier}")
        if self.max_interval < self.initial_interval:
            raise ValueError("max_interval must not be smaller than initial_interval")
        if not 0 <= self.randomization_factor < 1:
            raise ValueError(
                f"randomization_factor must be in [0, 1): {self.randomization_factor}"
            )
        if self.max_elapsed <= 0:
            raise ValueError(f"max_elapsed must be positive: {self.max_elapsed}")
        if self.max_consecutive_errors is not None and self.max_consecutive_errors < 1:
            raise ValueError(
                f"max_consecutive_errors must be at least 1: {self.max_consecutive_errors}"
            )

    def next_interval(self, current: float) -> float:
        """Grow ``current`` by the multiplier, capped at ``max_interval``."""
        return min(current * self.multiplier, self.max_interval)

    def randomize(self, interval: float, rng: Optional[random.Random] = None) -> float:
        """Apply jitter to ``interval``."""
        if not self.randomization_factor:
            return interval
        delta = self.randomization_factor * interval
        return (rng or random).uniform(interval - delta, interval + delta)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "initial_interval": self.initial_interval,
            "multiplier": self.multiplier,
            "max_interval": self.max_interval,
            "randomization_factor": self.randomization_factor,
            "max_elapsed": self.max_elapsed,
            "max_consecutive_errors": self.max_consecutive_errors,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExponentialBackoffPolicy":
        return cls(**data)


@dataclass
class RetryState:
    """Mutable state of a single backoff loop."""

    started_at: float
    current_interval: float
    attempts: int = 0
    consecutive_errors: int = 0
    last_reason: Optional[str] = None


def check_cancelled(cancel_event: Optional[threading.Event]) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise DeploymentCancelledError("deployment cancelled while waiting")


def pause(
    delay: float,
    sleep: Callable[[float], None] = time.sleep,
    cancel_event: Optional[threading.Event] = None,
) -> None:
    """Sleep for ``delay`` seconds, waking early if ``cancel_event`` is set."""
    if cancel_event is None:
        sleep(delay)
        return
    if cancel_event.wait(delay):
        raise DeploymentCancelledError("deployment cancelled while waiting")


def poll_fixed(
    condition: Callable[[], bool],
    policy: FixedIntervalPolicy,
    cancel_event: Optional[threading.Event] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """
    Call ``condition`` until it returns True.

    The condition is called at most ``policy.max_attempts`` times with
    ``policy.interval`` seconds between calls. Raising ``StopPolling`` ends the
    poll at once; any other exception propagates unchanged.

    Returns:
        Number of attempts used

    Raises:
        PollExhaustedError: If attempts ran out or the condition stopped the poll
        DeploymentCancelledError: If ``cancel_event`` was set
    """
    for attempt in range(1, policy.max_attempts + 1):
        check_cancelled(cancel_event)
        try:
            if condition():
                return attempt
        except StopPolling as e:
            raise PollExhaustedError(attempt, str(e)) from e

        if attempt < policy.max_attempts:
            logger.debug(f"Attempt {attempt}/{policy.max_attempts} not done, waiting {policy.interval:g}s")
            pause(policy.interval, sleep, cancel_event)

    raise PollExhaustedError(policy.max_attempts, "max attempts exceeded")


def retry_with_backoff(
    operation: Callable[[], T],
    policy: ExponentialBackoffPolicy,
    cancel_event: Optional[threading.Event] = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
    rng: Optional[random.Random] = None,
    started_at: Optional[float] = None,
) -> T:
    """
    Call ``operation`` until it returns, backing off between attempts.

    ``operation`` raises ``RetryableCondition`` to ask for another attempt; any
    other exception is fatal and propagates unchanged.

    Args:
        operation: Callable to retry
        policy: Backoff policy
        cancel_event: Optional event that aborts the loop when set
        clock: Monotonic clock used to measure the ceiling
        sleep: Sleep function (ignored when ``cancel_event`` is given)
        rng: Random source for jitter
        started_at: Clock value the ceiling is measured from; defaults to now

    Returns:
        Whatever ``operation`` returned

    Raises:
        RetryCeilingExceeded: If the next delay would pass ``policy.max_elapsed``
        RetryErrorLimitExceeded: If ``policy.max_consecutive_errors`` was hit
        DeploymentCancelledError: If ``cancel_event`` was set
    """
    state = RetryState(
        started_at=clock() if started_at is None else started_at,
        current_interval=policy.initial_interval,
    )

    while True:
        check_cancelled(cancel_event)
        state.attempts += 1
        try:
            return operation()
        except RetryableCondition as e:
            state.last_reason = e.reason
            if e.query_error:
                state.consecutive_errors += 1
            else:
                state.consecutive_errors = 0

            if (
                policy.max_consecutive_errors is not None
                and state.consecutive_errors >= policy.max_consecutive_errors
            ):
                raise RetryErrorLimitExceeded(state.consecutive_errors, state.last_reason) from e

            delay = policy.randomize(state.current_interval, rng)
            state.current_interval = policy.next_interval(state.current_interval)
            elapsed = clock() - state.started_at
            if elapsed + delay > policy.max_elapsed:
                raise RetryCeilingExceeded(policy.max_elapsed, state.last_reason) from e

        logger.debug(
            f"Attempt {state.attempts} not done ({state.last_reason}), "
            f"retrying in {delay:.1f}s"
        )
        pause(delay, sleep, cancel_event)
