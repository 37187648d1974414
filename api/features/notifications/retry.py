"""Bounded retry with decorrelated jitter for outbound bot sends.

A send either succeeds, fails transiently (throttled or bad gateway, worth
another try) or fails fatally. Only transient failures consume retry slots;
anything else is raised on the first attempt.
"""
import asyncio
import enum
import random
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, FrozenSet, Optional, TypeVar

import structlog
from botbuilder.schema import ErrorResponseException
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
)
from tenacity.wait import wait_base

from core.settings import NotificationSettings

logger = structlog.get_logger("notifications.retry")

T = TypeVar("T")

TOO_MANY_REQUESTS = 429
BAD_GATEWAY = 502


class SendOutcomeKind(str, enum.Enum):
    OK = "ok"
    TRANSIENT = "transient"
    FATAL = "fatal"


@dataclass(frozen=True)
class SendOutcome:
    """Tagged result of one send attempt."""

    kind: SendOutcomeKind
    status_code: Optional[int] = None
    error: Optional[BaseException] = None

    @property
    def is_transient(self) -> bool:
        return self.kind is SendOutcomeKind.TRANSIENT


def transport_status_code(error: BaseException) -> Optional[int]:
    """Read the HTTP status carried by a transport error, if any."""
    response = getattr(error, "response", None)
    if response is None:
        return None
    status = getattr(response, "status_code", None)
    if status is None:
        status = getattr(response, "status", None)
    try:
        return int(status) if status is not None else None
    except (TypeError, ValueError):
        return None


def classify_failure(
    error: BaseException,
    retryable_status_codes: FrozenSet[int] = frozenset({TOO_MANY_REQUESTS, BAD_GATEWAY}),
) -> SendOutcome:
    """Tag a send failure as transient or fatal.

    Transient means a connector error response whose status is one of
    retryable_status_codes. Everything else is fatal.
    """
    if isinstance(error, ErrorResponseException):
        status = transport_status_code(error)
        if status in retryable_status_codes:
            return SendOutcome(SendOutcomeKind.TRANSIENT, status_code=status, error=error)
        return SendOutcome(SendOutcomeKind.FATAL, status_code=status, error=error)
    return SendOutcome(SendOutcomeKind.FATAL, error=error)


@dataclass(frozen=True)
class RetryPolicy:
    """Retry configuration; delays are in seconds."""

    max_retries: int = 2
    base_delay: float = 1.5
    max_delay: float = 4.5
    retryable_status_codes: FrozenSet[int] = field(
        default_factory=lambda: frozenset({TOO_MANY_REQUESTS, BAD_GATEWAY})
    )

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError("max_retries must not be negative")
        if self.base_delay < 0 or self.max_delay < self.base_delay:
            raise ValueError("Delays must satisfy 0 <= base_delay <= max_delay")

    @classmethod
    def from_settings(cls, settings: NotificationSettings) -> "RetryPolicy":
        return cls(
            max_retries=settings.NOTIFICATION_MAX_RETRIES,
            base_delay=settings.NOTIFICATION_BASE_DELAY_MS / 1000,
            max_delay=settings.NOTIFICATION_MAX_DELAY_MS / 1000,
        )

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def is_retryable(self, error: BaseException) -> bool:
        return classify_failure(error, self.retryable_status_codes).is_transient


class wait_decorrelated_jitter(wait_base):
    """Decorrelated jitter: next = min(cap, uniform(base, previous * 3)).

    The previous delay starts at base. Holds state, so build one per
    retried call.
    """

    def __init__(self, base: float, cap: float, rng: Optional[random.Random] = None):
        self.base = base
        self.cap = cap
        self.rng = rng or random.Random()
        self.previous = base

    def __call__(self, retry_state: RetryCallState) -> float:
        upper = max(self.base, self.previous * 3)
        delay = min(self.cap, self.rng.uniform(self.base, upper))
        self.previous = delay
        return delay


def _log_retry(retry_state: RetryCallState) -> None:
    error = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "notification.retry.scheduled",
        attempt=retry_state.attempt_number,
        delay=round(retry_state.next_action.sleep, 3) if retry_state.next_action else None,
        status_code=transport_status_code(error) if error else None,
    )


async def execute_with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    rng: Optional[random.Random] = None,
) -> T:
    """Run operation, retrying transient failures under policy.

    Returns the operation's result. A fatal error is raised immediately; the
    last transient error is raised once retries are exhausted.
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(policy.max_attempts),
        wait=wait_decorrelated_jitter(policy.base_delay, policy.max_delay, rng),
        retry=retry_if_exception(policy.is_retryable),
        before_sleep=_log_retry,
        sleep=sleep,
        reraise=True,
    )
    return await retrying(operation)
