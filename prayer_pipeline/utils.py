"""
Time helpers and the retry policy shared across the service.

All timestamps are naive UTC: that is how they are stored, compared and
returned.
"""
from datetime import datetime, timezone
from functools import wraps
from typing import Callable, TypeVar, Any, Optional, Tuple, Type

from tenacity import (
    RetryCallState,
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

from prayer_pipeline.config import settings
from prayer_pipeline.exceptions import PersistenceError
from prayer_pipeline.logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar('T')

SCHEDULED = "scheduled"
COMPLETED = "completed"

TRANSIENT_ERRORS: Tuple[Type[BaseException], ...] = (PersistenceError, ConnectionError, TimeoutError)


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values are assumed UTC already."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def is_upcoming(start_time: datetime, now: Optional[datetime] = None) -> bool:
    """
    True while a meeting has not started yet.

    This is the only place "upcoming" is decided: list filters, the computed
    status and the cancel-on-delete rule all call it.
    """
    return start_time > (now or utcnow())


def meeting_status(start_time: datetime, now: Optional[datetime] = None) -> str:
    """Scheduled until the start time passes, completed afterwards. Never stored."""
    return SCHEDULED if is_upcoming(start_time, now) else COMPLETED


def _log_retry(state: RetryCallState) -> None:
    logger.warning(
        "retrying_after_transient_error",
        function=state.fn.__qualname__ if state.fn else None,
        attempt=state.attempt_number,
        wait_seconds=round(state.next_action.sleep, 2) if state.next_action else None,
        error=str(state.outcome.exception()) if state.outcome else None,
    )


def async_retry(
    max_attempts: Optional[int] = None,
    backoff_base: Optional[float] = None,
    max_wait: Optional[int] = None,
    retry_on: Tuple[Type[BaseException], ...] = TRANSIENT_ERRORS,
):
    """
    Retry an async function on transient errors with exponential backoff.

    Defaults come from the notification_max_retries, retry_backoff_base and
    retry_max_wait settings. After the last attempt the original exception
    is re-raised, not wrapped in tenacity's RetryError.

    Usage:
        @async_retry()
        async def write_rows(...): ...
    """
    max_attempts = max_attempts or settings.notification_max_retries
    backoff_base = backoff_base or settings.retry_backoff_base
    max_wait = max_wait or settings.retry_max_wait

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @retry(
            stop=stop_after_attempt(max_attempts),
            wait=wait_exponential(multiplier=1, min=1, max=max_wait, exp_base=backoff_base),
            retry=retry_if_exception_type(retry_on),
            before_sleep=_log_retry,
            reraise=True,
        )
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            return await func(*args, **kwargs)

        return wrapper

    return decorator
