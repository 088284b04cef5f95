"""
Optimistic concurrency helpers.

Balance and award writes are version-conditional (see DocumentStore.update_document).
A write that loses the race raises ConcurrencyConflictError; the whole
read-compute-write unit is then re-run against fresh state.
"""
import logging
from typing import Callable, TypeVar

from .exceptions import ConcurrencyConflictError

logger = logging.getLogger(__name__)

T = TypeVar('T')


def retry_on_conflict(operation: Callable[[], T], attempts: int = 3, label: str = 'write') -> T:
    """
    Run `operation` until it completes without a version conflict.

    Args:
        operation: Zero-arg callable that re-reads state on every call
        attempts: Maximum number of tries (>= 1)
        label: Name used in log lines

    Raises:
        ConcurrencyConflictError: If every attempt conflicted
    """
    attempts = max(1, attempts)
    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except ConcurrencyConflictError as e:
            if attempt == attempts:
                logger.error(f"{label}: giving up after {attempts} conflicting attempts ({e.message})")
                raise
            logger.info(f"{label}: version conflict on attempt {attempt}, retrying")
