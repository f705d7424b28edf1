import json
from typing import Any

import aiosqlite
import structlog

from marketboard.market.fields import clean_text, positive_number
from marketboard.market.models import DataSource, Market
from marketboard.market.schemas import CompanyProfile, SparklinePoint, Stock
from marketboard.market.series import sort_series, to_finite_float

logger = structlog.get_logger()

RANKING_SIZE = 10


def yahoo_symbol(ticker: str) -> str:
    return f"{ticker}.BA"


def decode_sparkline(raw: Any) -> list[SparklinePoint]:
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            return []
    if not isinstance(raw, list):
        return []

    points: list[SparklinePoint] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        timestamp = to_finite_float(item.get("timestamp"))
        value = to_finite_float(item.get("value"))
        if timestamp is None or value is None:
            continue
        points.append(SparklinePoint(timestamp=int(timestamp), value=value))
    return sort_series(points)


def rows_to_stocks(rows: list[dict[str, Any]]) -> list[Stock]:
    """Cached rows as ranked stocks; rows with a non-finite or non-positive price are dropped."""
    stocks: list[Stock] = []
    for row in rows:
        price = to_finite_float(row.get("price"))
        percent = to_finite_float(row.get("percent_change"))
        if price is None or percent is None or price <= 0:
            continue
        stocks.append(
            Stock(
                id=row["ticker"],
                ticker=row["ticker"],
                company_name=clean_text(row.get("company_name")),
                market=Market.AR,
                price=price,
                percent_change=percent,
                sparkline=decode_sparkline(row.get("sparkline")),
            )
        )
    stocks.sort(key=lambda stock: stock.percent_change, reverse=True)
    return stocks[:RANKING_SIZE]


def row_to_profile(row: dict[str, Any], source: DataSource) -> CompanyProfile:
    return CompanyProfile(
        ticker=row["ticker"],
        market=Market.AR,
        company_name=clean_text(row.get("company_name")) or row["ticker"],
        description=clean_text(row.get("description")),
        sector=clean_text(row.get("sector")),
        industry=clean_text(row.get("industry")),
        market_cap=positive_number(row.get("market_cap")),
        exchange=clean_text(row.get("exchange")),
        country=clean_text(row.get("country")),
        website=clean_text(row.get("website")),
        source=source,
        last_updated_at=row.get("updated_at") or row.get("cached_at") or "",
    )


class _CacheRepository:
    """Shared guard: a missing connection or a failing query reads as an empty cache."""

    def __init__(self, db: aiosqlite.Connection | None) -> None:
        self._db = db

    def _available(self, table: str) -> bool:
        if self._db is None:
            logger.warning("persisted_cache_unconfigured", table=table)
            return False
        return True


class MarketCacheRepository(_CacheRepository):
    TABLE = "argentina_market_cache"

    async def read(
        self, timeframe: str, limit: int = RANKING_SIZE, ticker: str | None = None
    ) -> list[dict[str, Any]]:
        if not self._available(self.TABLE):
            return []

        query = f"SELECT * FROM {self.TABLE} WHERE timeframe = ?"
        params: list[Any] = [timeframe]
        if ticker:
            query += " AND ticker = ?"
            params.append(ticker)
        query += " ORDER BY percent_change DESC LIMIT ?"
        params.append(limit)

        try:
            cursor = await self._db.execute(query, params)
            rows = await cursor.fetchall()
        except aiosqlite.Error as exc:
            logger.error("persisted_cache_read_failed", table=self.TABLE, error=str(exc))
            return []
        return [dict(row) for row in rows]

    async def upsert(self, timeframe: str, stocks: list[Stock], cached_at: str) -> None:
        if not stocks or not self._available(self.TABLE):
            return

        rows = [
            (
                stock.ticker,
                yahoo_symbol(stock.ticker),
                timeframe,
                Market.AR.value,
                stock.company_name,
                stock.price,
                stock.percent_change,
                json.dumps([point.model_dump() for point in stock.sparkline]),
                "live",
                cached_at,
                cached_at,
            )
            for stock in stocks
        ]
        try:
            await self._db.executemany(
                f"""
                INSERT INTO {self.TABLE} (
                    ticker, ticker_yahoo, timeframe, market, company_name, price,
                    percent_change, sparkline, source, cached_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT (ticker, timeframe) DO UPDATE SET
                    ticker_yahoo = excluded.ticker_yahoo,
                    market = excluded.market,
                    company_name = COALESCE(excluded.company_name, company_name),
                    price = excluded.price,
                    percent_change = excluded.percent_change,
                    sparkline = excluded.sparkline,
                    source = excluded.source,
                    cached_at = excluded.cached_at,
                    updated_at = excluded.updated_at
                """,
                rows,
            )
            await self._db.commit()
        except aiosqlite.Error as exc:
            logger.error("persisted_cache_write_failed", table=self.TABLE, error=str(exc))


class ProfileCacheRepository(_CacheRepository):
    TABLE = "argentina_company_profile_cache"

    async def read(self, ticker: str) -> dict[str, Any] | None:
        if not self._available(self.TABLE):
            return None
        try:
            cursor = await self._db.execute(
                f"SELECT * FROM {self.TABLE} WHERE ticker = ?", (ticker,)
            )
            row = await cursor.fetchone()
        except aiosqlite.Error as exc:
            logger.error("persisted_cache_read_failed", table=self.TABLE, error=str(exc))
            return None
        return dict(row) if row else None

    async def upsert(self, profile: CompanyProfile, cached_at: str) -> None:
        if not self._available(self.TABLE):
            return
        try:
            await self._db.execute(
                f"""
                INSERT INTO {self.TABLE} (
                    ticker, ticker_yahoo, market, company_name, description, sector,
                    industry, market_cap, exchange, country, website, source,
                    cached_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT (ticker) DO UPDATE SET
                    ticker_yahoo = excluded.ticker_yahoo,
                    company_name = excluded.company_name,
                    description = excluded.description,
                    sector = excluded.sector,
                    industry = excluded.industry,
                    market_cap = excluded.market_cap,
                    exchange = excluded.exchange,
                    country = excluded.country,
                    website = excluded.website,
                    source = excluded.source,
                    cached_at = excluded.cached_at,
                    updated_at = excluded.updated_at
                """,
                (
                    profile.ticker,
                    yahoo_symbol(profile.ticker),
                    Market.AR.value,
                    profile.company_name,
                    profile.description,
                    profile.sector,
                    profile.industry,
                    profile.market_cap,
                    profile.exchange,
                    profile.country,
                    profile.website,
                    "live",
                    cached_at,
                    cached_at,
                ),
            )
            await self._db.commit()
        except aiosqlite.Error as exc:
            logger.error("persisted_cache_write_failed", table=self.TABLE, error=str(exc))
