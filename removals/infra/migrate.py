#!/usr/bin/env python3
# removals/infra/migrate.py
"""
Standalone migration runner.

    python -m removals.infra.migrate

Run before starting the API (CI/CD step, init container, or by hand).
The API checks the schema version at startup but never migrates.
"""
import asyncio
import sys

from removals.infra.migrations_async import apply_migrations
from removals.infra.db_async import init_pool, close_pool
from removals.infra.logging_config import setup_logging, get_logger
from removals.config import settings

logger = get_logger(__name__)


async def main() -> int:
    logger.info("=" * 60)
    logger.info("Database Migration Runner")
    logger.info(f"Environment: {settings.app_env}")
    logger.info(f"Database: {settings.pghost}:{settings.pgport}/{settings.pgdatabase}")
    logger.info("=" * 60)

    try:
        await init_pool()
        result = await apply_migrations()
    except Exception as exc:
        logger.critical(f"MIGRATION FAILED: {exc}", exc_info=True)
        return 1
    finally:
        await close_pool()

    logger.info(f"Migrations applied: {result['count']}")
    for migration in result['applied']:
        logger.info(f"  ✓ {migration}")
    if not result['applied']:
        logger.info("No new migrations to apply")

    return 0 if result['ok'] else 1


if __name__ == "__main__":
    setup_logging(level="INFO", use_json=False)
    sys.exit(asyncio.run(main()))
