import aiosqlite
import structlog

from marketboard.config import settings
from marketboard.exceptions import ConfigurationError

logger = structlog.get_logger()

_db: aiosqlite.Connection | None = None

DDL_STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS argentina_market_cache (
        ticker TEXT NOT NULL,
        ticker_yahoo TEXT NOT NULL,
        timeframe TEXT NOT NULL,
        market TEXT NOT NULL DEFAULT 'AR',
        company_name TEXT,
        price REAL NOT NULL,
        percent_change REAL NOT NULL,
        sparkline TEXT NOT NULL DEFAULT '[]',
        source TEXT NOT NULL DEFAULT 'live',
        cached_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        PRIMARY KEY (ticker, timeframe)
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_argentina_market_cache_timeframe
        ON argentina_market_cache (timeframe, percent_change DESC)
    """,
    """
    CREATE TABLE IF NOT EXISTS argentina_company_profile_cache (
        ticker TEXT PRIMARY KEY,
        ticker_yahoo TEXT NOT NULL,
        market TEXT NOT NULL DEFAULT 'AR',
        company_name TEXT NOT NULL,
        description TEXT,
        sector TEXT,
        industry TEXT,
        market_cap REAL,
        exchange TEXT,
        country TEXT,
        website TEXT,
        source TEXT NOT NULL DEFAULT 'live',
        cached_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
]


async def init_database(path: str | None = None) -> None:
    global _db
    db_path = settings.db_path if path is None else path
    if not db_path:
        logger.warning("database_disabled")
        return

    _db = await aiosqlite.connect(db_path)
    _db.row_factory = aiosqlite.Row
    await _db.execute("PRAGMA journal_mode=WAL")

    for ddl in DDL_STATEMENTS:
        await _db.execute(ddl)
    await _db.commit()

    logger.info("database_initialized", path=db_path)


async def close_database() -> None:
    global _db
    if _db is not None:
        await _db.close()
        _db = None
        logger.info("database_closed")


def get_db() -> aiosqlite.Connection:
    if _db is None:
        raise ConfigurationError("Database not initialized. Call init_database() first.")
    return _db


def get_optional_db() -> aiosqlite.Connection | None:
    return _db


async def check_health() -> str:
    if _db is None:
        return "disabled"
    cursor = await get_db().execute("SELECT 1")
    await cursor.close()
    return "ok"
