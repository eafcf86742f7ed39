import logging
import time
from typing import Callable, TypeVar

from .errors import ServiceCallError, ServiceErrorKind, ZeroQuotaError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def retry_operation(
    operation: Callable[[], T],
    max_retries: int = 3,
    base_delay: float = 10.0,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run ``operation``, retrying rate limited or overloaded calls with exponential backoff.

    Waits ``base_delay * 2 ** attempt`` seconds after each retryable failure,
    the last one included. A zero quota aborts at once with
    :class:`ZeroQuotaError`; any other failure propagates on first occurrence.
    When every attempt is used up the last error is raised.
    """
    if max_retries < 1:
        raise ValueError("max_retries must be at least 1")

    last_error: Exception | None = None
    for attempt in range(max_retries):
        try:
            return operation()
        except ServiceCallError as exc:
            last_error = exc
            if exc.kind is ServiceErrorKind.ZERO_QUOTA:
                logger.error("Quota is 0. Access denied by configuration.")
                raise ZeroQuotaError() from exc
            if not exc.kind.retryable:
                raise
            delay = base_delay * 2 ** attempt
            logger.warning(
                "Attempt %s failed (%s). Backing off %.1fs...",
                attempt + 1,
                exc.kind.value,
                delay,
            )
            sleep(delay)

    logger.warning("Giving up after %s attempts", max_retries)
    assert last_error is not None
    raise last_error
