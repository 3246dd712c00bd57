"""Retry with exponential backoff.

One call to `retry_operation` owns a single continuous retry sequence: it
keeps invoking the operation, pausing between attempts, until an attempt
succeeds, an attempt fails permanently, the elapsed time budget runs out,
or the caller cancels.

"""
import logging
import random
import threading
import time
from typing import Callable
from typing import Optional
from typing import TypeVar

import tenacity
from tenacity.wait import wait_base

from digicert_dcv import errors
from digicert_dcv.classify import Classification

logger = logging.getLogger(__name__)

T = TypeVar('T')

# The DNS record operations give up after ten minutes.
MAX_ELAPSED_TIME = 10 * 60


class BackoffPolicy:
    """Exponential backoff schedule.

    The delay after the n-th failed attempt is
    ``initial_interval * multiplier ** (n - 1)``, capped at
    ``max_interval``, then jittered by ``randomization_factor``.

    :ivar float initial_interval: Delay after the first failure, in seconds.
    :ivar float multiplier: Growth factor between consecutive delays.
    :ivar float max_interval: Upper bound of the un-jittered delay.
    :ivar float randomization_factor: Jitter, as a fraction of the delay.
        ``0`` disables jitter.

    """
    def __init__(self, initial_interval: float = 0.5, multiplier: float = 1.5,
                 max_interval: float = 60.0, randomization_factor: float = 0.5) -> None:
        if initial_interval < 0 or max_interval < initial_interval:
            raise ValueError('Expected 0 <= initial_interval <= max_interval')
        if multiplier < 1:
            raise ValueError('multiplier must be at least 1')
        if not 0 <= randomization_factor < 1:
            raise ValueError('randomization_factor must be in [0, 1)')
        self.initial_interval = initial_interval
        self.multiplier = multiplier
        self.max_interval = max_interval
        self.randomization_factor = randomization_factor

    def interval(self, attempt_number: int) -> float:
        """Un-jittered delay after failed attempt number `attempt_number`."""
        try:
            interval = self.initial_interval * self.multiplier ** (attempt_number - 1)
        except OverflowError:
            return self.max_interval
        return min(interval, self.max_interval)

    def randomize(self, interval: float) -> float:
        """Apply jitter to `interval`."""
        delta = self.randomization_factor * interval
        return random.uniform(interval - delta, interval + delta)

    def __repr__(self) -> str:
        return ('{0}(initial_interval={1!r}, multiplier={2!r}, max_interval={3!r}, '
                'randomization_factor={4!r})').format(
                    self.__class__.__name__, self.initial_interval, self.multiplier,
                    self.max_interval, self.randomization_factor)


class wait_exponential_within(wait_base):  # pylint: disable=invalid-name
    """Tenacity wait strategy following a `BackoffPolicy`.

    Delays never run past `max_elapsed`, so the last attempt happens at
    the deadline instead of one full interval after it.

    """
    def __init__(self, policy: BackoffPolicy, max_elapsed: float) -> None:
        self.policy = policy
        self.max_elapsed = max_elapsed

    def __call__(self, retry_state: tenacity.RetryCallState) -> float:
        delay = self.policy.randomize(self.policy.interval(retry_state.attempt_number))
        remaining = self.max_elapsed - (retry_state.seconds_since_start or 0)
        return max(0.0, min(delay, remaining))


def _is_retryable(error: BaseException) -> bool:
    return isinstance(error, Exception) and not isinstance(
        error, (errors.PermanentError, errors.RetryCancelledError))


def retry_operation(operation: Callable[[], T], max_elapsed: float = MAX_ELAPSED_TIME,
                    policy: Optional[BackoffPolicy] = None,
                    classifier: Optional[Callable[[BaseException], Classification]] = None,
                    cancel: Optional[threading.Event] = None,
                    sleep: Optional[Callable[[float], object]] = None) -> T:
    """Invoke `operation` until it succeeds or retrying has to stop.

    :param callable operation: Performs one attempt. Raising
        `.PermanentError` stops retrying immediately, any other
        `Exception` is retried.
    :param float max_elapsed: Time budget in seconds, measured from the
        start of the first attempt.
    :param BackoffPolicy policy: Delay schedule, defaults to `BackoffPolicy()`.
    :param callable classifier: Optional function deciding whether an
        error raised by `operation` is permanent, for operations that do
        not tag their errors themselves.
    :param threading.Event cancel: Optional cancellation token, checked
        before every attempt and every pause.
    :param callable sleep: Replacement for the pause between attempts.

    :returns: The return value of the successful attempt.

    :raises .PermanentError: An attempt failed permanently.
    :raises .RetryTimeoutError: `max_elapsed` passed without success.
    :raises .RetryCancelledError: `cancel` was set.

    """
    if policy is None:
        policy = BackoffPolicy()

    stop = tenacity.stop_after_delay(max_elapsed)
    if cancel is not None:
        stop = stop | tenacity.stop_when_event_set(cancel)
        if sleep is None:
            sleep = cancel.wait
    if sleep is None:
        sleep = time.sleep

    retrying = tenacity.Retrying(
        sleep=sleep,
        stop=stop,
        wait=wait_exponential_within(policy, max_elapsed),
        retry=tenacity.retry_if_exception(_is_retryable),
        before_sleep=tenacity.before_sleep_log(logger, logging.DEBUG),
    )

    last_error: Optional[BaseException] = None
    try:
        for attempt in retrying:
            with attempt:
                if cancel is not None and cancel.is_set():
                    raise errors.RetryCancelledError(last_error)
                try:
                    return operation()
                except errors.PermanentError:
                    raise
                except Exception as error:  # pylint: disable=broad-except
                    last_error = error
                    if classifier is not None and \
                            classifier(error) is Classification.PERMANENT:
                        raise errors.PermanentError(error) from error
                    raise
    except tenacity.RetryError as error:
        if last_error is None:
            last_error = error.last_attempt.exception()
        if cancel is not None and cancel.is_set():
            raise errors.RetryCancelledError(last_error) from last_error
        logger.debug('Giving up after %d attempts', error.last_attempt.attempt_number)
        raise errors.RetryTimeoutError(last_error, max_elapsed) from last_error
    # Unreachable: Retrying either returns from an attempt or raises.
    raise AssertionError('retry loop exited without result')  # pragma: no cover
