# removals/infra/db_resilience_async.py
"""
Retry helpers for asyncpg.

- ``is_transient_error``        — connection drops, timeouts, deadlocks
- ``retry_on_transient_error``  — decorator: re-run a whole async operation
- ``safe_db_conn``              — connection whose *acquisition* is retried
"""
from __future__ import annotations
import asyncio
from contextlib import AsyncExitStack, asynccontextmanager
from functools import wraps
from typing import Callable

import asyncpg
from removals.infra.db_async import db_conn
from removals.infra.logging_config import get_logger

logger = get_logger(__name__)

_TRANSIENT_PATTERNS = (
    "connection",
    "timeout",
    "closed",
    "network",
    "deadlock",
    "too many connections",
    "server closed",
    "connection reset",
)


def is_transient_error(exc: Exception) -> bool:
    """True for errors worth retrying (connection loss, overload, deadlock)."""
    if isinstance(exc, (
        asyncpg.PostgresConnectionError,
        asyncpg.TooManyConnectionsError,
        asyncpg.DeadlockDetectedError,
        ConnectionError,
        asyncio.TimeoutError,
    )):
        return True

    message = str(exc).lower()
    return any(pattern in message for pattern in _TRANSIENT_PATTERNS)


def retry_on_transient_error(
    max_retries: int = 3,
    initial_delay: float = 0.1,
    backoff_factor: float = 2.0,
    max_delay: float = 5.0
):
    """
    Retry an async function on transient database errors with exponential backoff.

    Example:
        @retry_on_transient_error(max_retries=3)
        async def load(session_id: str):
            async with db_conn() as conn:
                return await conn.fetchrow("SELECT ...", session_id)
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            delay = initial_delay

            for attempt in range(max_retries + 1):
                try:
                    return await func(*args, **kwargs)
                except Exception as exc:
                    if not is_transient_error(exc):
                        raise

                    if attempt >= max_retries:
                        logger.error(
                            f"Max retries ({max_retries}) exceeded in {func.__name__}",
                            exc_info=True
                        )
                        raise

                    logger.warning(
                        f"Transient error in {func.__name__} (attempt {attempt + 1}/{max_retries}): {exc}. "
                        f"Retrying in {delay:.2f}s..."
                    )
                    await asyncio.sleep(delay)
                    delay = min(delay * backoff_factor, max_delay)

        return wrapper
    return decorator


@asynccontextmanager
async def safe_db_conn(autocommit: bool = True, max_retries: int = 3):
    """
    ``db_conn()`` with retry while acquiring the connection.

    Errors raised inside the ``async with`` body are not retried here; wrap
    the whole operation in ``retry_on_transient_error`` for that.
    """
    delay = 0.1
    async with AsyncExitStack() as stack:
        for attempt in range(max_retries + 1):
            try:
                conn = await stack.enter_async_context(db_conn(autocommit=autocommit))
                break
            except Exception as exc:
                if not is_transient_error(exc):
                    raise
                if attempt >= max_retries:
                    logger.error(f"Max retries ({max_retries}) exceeded getting connection")
                    raise
                logger.warning(
                    f"Transient error getting connection (attempt {attempt + 1}/{max_retries}): {exc}. "
                    f"Retrying in {delay:.2f}s..."
                )
                await asyncio.sleep(delay)
                delay = min(delay * 2.0, 5.0)

        yield conn
