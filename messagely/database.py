"""asyncpg pool lifecycle and schema migrations for the user and message stores."""

from pathlib import Path
from typing import Optional

import asyncpg
import structlog

from messagely.config import get_settings
from messagely.errors import StoreUnavailable

logger = structlog.get_logger(__name__)

MIGRATIONS_DIR = Path(__file__).parent.parent / "migrations"

_pool: Optional[asyncpg.Pool] = None


async def get_pool() -> asyncpg.Pool:
    """Return the shared pool that UserService and MessageService query through.

    Raises:
        StoreUnavailable: If startup never opened the pool (or it was closed)
    """
    if _pool is None:
        logger.error("store_pool_missing")
        raise StoreUnavailable()
    return _pool


async def init_database() -> asyncpg.Pool:
    """Open the pool sized from settings. Calling it twice reuses the pool."""
    global _pool

    if _pool is not None:
        return _pool

    settings = get_settings()

    try:
        _pool = await asyncpg.create_pool(
            settings.postgres_url,
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
            command_timeout=settings.db_command_timeout,
        )
    except (asyncpg.PostgresError, OSError) as e:
        logger.error("store_pool_open_failed", error=str(e))
        raise

    logger.info(
        "store_pool_opened",
        min_size=settings.db_pool_min_size,
        max_size=settings.db_pool_max_size,
        command_timeout=settings.db_command_timeout,
    )
    return _pool


async def close_database() -> None:
    global _pool

    if _pool is None:
        return

    await _pool.close()
    _pool = None
    logger.info("store_pool_closed")


def _migration_files(directory: Path = MIGRATIONS_DIR) -> list[Path]:
    """The ``.sql`` files under ``directory``, applied in file-name order."""
    if not directory.is_dir():
        logger.warning("migrations_directory_not_found", path=str(directory))
        return []
    return sorted(directory.glob("*.sql"))


async def run_migrations(directory: Path = MIGRATIONS_DIR) -> int:
    """Create the users and messages tables if they are missing.

    Every migration uses ``IF NOT EXISTS``, so they are re-run on each start.

    Returns:
        Number of migration files executed
    """
    files = _migration_files(directory)
    if not files:
        return 0

    pool = await get_pool()
    async with pool.acquire() as conn:
        for path in files:
            try:
                await conn.execute(path.read_text())
            except asyncpg.PostgresError as e:
                logger.error("migration_failed", file=path.name, error=str(e))
                raise
            logger.info("migration_applied", file=path.name)

    return len(files)


async def health_check() -> bool:
    """True if a ``SELECT 1`` round-trips through the pool."""
    try:
        pool = await get_pool()
        async with pool.acquire() as conn:
            return await conn.fetchval("SELECT 1") == 1
    except (StoreUnavailable, asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
        logger.warning("store_health_check_failed", error=str(e))
        return False
