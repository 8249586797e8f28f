# removals/infra/pg_state_store_async.py
from __future__ import annotations
import json
from datetime import datetime, timezone
from typing import Optional

from removals.core.calculator.domain import CalculatorState
from removals.core.engine.ports import AsyncCalculatorStateStore
from removals.infra.db_resilience_async import retry_on_transient_error, safe_db_conn
from removals.infra.metrics import AppMetrics
from removals.infra.logging_config import get_logger

logger = get_logger(__name__)


class AsyncPostgresStateStore(AsyncCalculatorStateStore):
    """CalculatorState persisted as jsonb in ``quote_sessions``."""

    @retry_on_transient_error(max_retries=2)
    async def get(self, session_id: str) -> Optional[CalculatorState]:
        try:
            async with safe_db_conn() as conn:
                row = await conn.fetchrow(
                    "SELECT state_json::text, updated_at FROM quote_sessions WHERE session_id=$1",
                    session_id
                )
                if not row:
                    return None

                state = CalculatorState.from_dict(json.loads(row['state_json']))
                state.tracking.session_id = session_id
                state.tracking.updated_at = row['updated_at']
                return state
        except Exception:
            logger.error(f"Failed to get quote session: session={session_id[:8]}", exc_info=True)
            AppMetrics.database_error("state_get")
            raise

    @retry_on_transient_error(max_retries=2)
    async def upsert(self, session_id: str, state: CalculatorState) -> None:
        try:
            async with safe_db_conn() as conn:
                await conn.execute(
                    """
                    INSERT INTO quote_sessions(session_id, state_json, step)
                    VALUES ($1, $2::jsonb, $3)
                    ON CONFLICT (session_id)
                    DO UPDATE SET
                      state_json = EXCLUDED.state_json,
                      step = EXCLUDED.step,
                      updated_at = now()
                    """,
                    session_id, json.dumps(state.to_dict()), state.current_step.value
                )
        except Exception:
            logger.error(f"Failed to upsert quote session: session={session_id[:8]}", exc_info=True)
            AppMetrics.database_error("state_upsert")
            raise

    async def delete(self, session_id: str) -> None:
        try:
            async with safe_db_conn() as conn:
                await conn.execute("DELETE FROM quote_sessions WHERE session_id=$1", session_id)
        except Exception:
            logger.error(f"Failed to delete quote session: session={session_id[:8]}", exc_info=True)
            AppMetrics.database_error("state_delete")
            raise

    async def cleanup_expired(self, ttl_seconds: int) -> int:
        try:
            async with safe_db_conn() as conn:
                result = await conn.execute(
                    "DELETE FROM quote_sessions WHERE updated_at < now() - ($1 || ' seconds')::interval",
                    str(ttl_seconds)
                )
                # asyncpg execute returns "DELETE N"
                deleted = int(result.split()[-1]) if result else 0
                if deleted > 0:
                    logger.info(f"Cleaned up {deleted} expired quote sessions (ttl={ttl_seconds}s)")
                return deleted
        except Exception:
            logger.error(f"Failed to cleanup expired quote sessions: ttl={ttl_seconds}", exc_info=True)
            AppMetrics.database_error("state_cleanup")
            raise


class InMemoryStateStore(AsyncCalculatorStateStore):
    """Process-local store for development (``USE_MEMORY_STORE=true``).

    States go through ``to_dict``/``from_dict`` like the Postgres store so
    serialization problems show up in dev too.
    """

    def __init__(self) -> None:
        self._rows: dict[str, tuple[dict, datetime]] = {}

    async def get(self, session_id: str) -> Optional[CalculatorState]:
        row = self._rows.get(session_id)
        if row is None:
            return None
        data, updated_at = row
        state = CalculatorState.from_dict(json.loads(json.dumps(data)))
        state.tracking.session_id = session_id
        state.tracking.updated_at = updated_at
        return state

    async def upsert(self, session_id: str, state: CalculatorState) -> None:
        self._rows[session_id] = (state.to_dict(), _utcnow())

    async def delete(self, session_id: str) -> None:
        self._rows.pop(session_id, None)

    async def cleanup_expired(self, ttl_seconds: int) -> int:
        now = _utcnow()
        expired = [
            sid for sid, (_data, updated_at) in self._rows.items()
            if (now - updated_at).total_seconds() > ttl_seconds
        ]
        for sid in expired:
            del self._rows[sid]
        return len(expired)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)
