"""Generic retry-with-exponential-backoff for storage writes."""
from __future__ import annotations

import logging
import time
from typing import Callable, TypeVar

from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def retry_call(
    fn: Callable[[], T],
    *,
    attempts: int = 3,
    base_delay: float = 0.5,
    retry_on: tuple[type[BaseException], ...] = (SQLAlchemyError,),
    description: str = "operation",
    on_retry: Callable[[BaseException], None] | None = None,
) -> T:
    """Run ``fn`` up to ``attempts`` times, sleeping base_delay * 2**n between tries.

    ``on_retry`` runs after each failed attempt that will be retried (used to
    roll back the session). The last exception propagates.
    """
    if attempts < 1:
        raise ValueError("attempts must be >= 1")
    for attempt in range(attempts):
        try:
            return fn()
        except retry_on as exc:
            if attempt == attempts - 1:
                raise
            delay = base_delay * (2 ** attempt)
            logger.warning(
                "%s failed (%s), retrying in %.2fs (attempt %d/%d)",
                description, exc, delay, attempt + 1, attempts,
            )
            if on_retry is not None:
                on_retry(exc)
            time.sleep(delay)
    raise RuntimeError("retry_call exhausted retries without result")
