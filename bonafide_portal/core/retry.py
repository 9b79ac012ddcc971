"""
Bonafide Portal — Lock contention retry decorator

Uses exponential backoff + jitter while another caller holds a request's
critical section. Once retries are exhausted the contention is reported to
the caller as a ConflictError.
"""
import asyncio
import random
import functools
import logging

from bonafide_portal.core.config import get_settings
from bonafide_portal.core.errors import ConflictError

settings = get_settings()
logger = logging.getLogger(__name__)


class LockContention(Exception):
    """Raised when a lock key is already held by another caller."""
    pass


def with_lock_retry(max_retries: int | None = None):
    """
    Decorator for async functions that try to take a short-lived lock.
    On LockContention, retries with exponential backoff + jitter.

    Usage:
        @with_lock_retry()
        async def acquire(...):
            ...
    """
    _max = max_retries or settings.LOCK_MAX_RETRIES

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            for attempt in range(1, _max + 1):
                try:
                    return await func(*args, **kwargs)
                except LockContention as exc:
                    if attempt == _max:
                        logger.error(
                            "Lock contention unresolved after %d retries for %s",
                            _max, func.__name__,
                        )
                        raise ConflictError(
                            "The request is being updated by someone else. Please retry.",
                            {"lock": str(exc)},
                        ) from exc
                    # Exponential backoff: base * 2^attempt + jitter
                    base_delay = settings.LOCK_BASE_DELAY_MS / 1000.0
                    max_delay = settings.LOCK_MAX_DELAY_MS / 1000.0
                    jitter = random.uniform(0, settings.LOCK_JITTER_MS / 1000.0)
                    delay = min(base_delay * (2 ** attempt), max_delay) + jitter
                    logger.warning(
                        "Lock %s busy on attempt %d/%d, retrying in %.3fs",
                        exc, attempt, _max, delay,
                    )
                    await asyncio.sleep(delay)
        return wrapper
    return decorator
