# removals/infra/migrations_async.py
"""
SQL migrations runner (asyncpg).
"""
from __future__ import annotations
from pathlib import Path

from removals.infra.db_async import db_conn
from removals.infra.logging_config import get_logger

logger = get_logger(__name__)


def _sql_dir() -> Path:
    return Path(__file__).resolve().parent / "sql"


def pending_files(applied: set[str]) -> list[Path]:
    """Migration files not yet recorded in ``schema_migrations``, in name order."""
    return [
        p for p in sorted(_sql_dir().glob("*.sql"))
        if p.is_file() and p.name not in applied
    ]


async def apply_migrations() -> dict:
    """
    Apply ``sql/*.sql`` in alphabetical order inside one transaction.

    Returns ``{"ok": True, "applied": [...], "count": n}``.
    """
    async with db_conn(autocommit=False) as conn:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_migrations(
              version text PRIMARY KEY,
              applied_at timestamptz NOT NULL DEFAULT now()
            )
            """
        )

        rows = await conn.fetch("SELECT version FROM schema_migrations")
        applied = {row['version'] for row in rows}

        applied_now = []
        for p in pending_files(applied):
            logger.info(f"Applying migration: {p.name}")
            await conn.execute(p.read_text(encoding="utf-8"))
            await conn.execute("INSERT INTO schema_migrations(version) VALUES ($1)", p.name)
            applied_now.append(p.name)

    logger.info(f"Migrations complete: {len(applied_now)} applied")
    return {"ok": True, "applied": applied_now, "count": len(applied_now)}


async def current_schema_version() -> str | None:
    """Latest applied migration, or None on an empty database."""
    async with db_conn() as conn:
        exists = await conn.fetchval("SELECT to_regclass('schema_migrations') IS NOT NULL")
        if not exists:
            return None
        return await conn.fetchval("SELECT max(version) FROM schema_migrations")
