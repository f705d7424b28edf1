from enum import StrEnum


class Market(StrEnum):
    US = "US"
    AR = "AR"


class Currency(StrEnum):
    USD = "USD"
    ARS = "ARS"


class DataSource(StrEnum):
    LIVE = "LIVE"
    CACHE = "CACHE"
    MOCK = "MOCK"
    UNAVAILABLE = "UNAVAILABLE"


class Freshness(StrEnum):
    fresh = "fresh"
    stale = "stale"
    delayed = "delayed"


class Timeframe(StrEnum):
    """Ranking lookback windows."""

    ONE_HOUR = "1H"
    ONE_DAY = "1D"
    ONE_WEEK = "1W"
    ONE_MONTH = "1M"
    THREE_MONTHS = "3M"
    YTD = "YTD"


class DetailRange(StrEnum):
    """Detail lookback windows, a superset of Timeframe."""

    ONE_HOUR = "1H"
    ONE_DAY = "1D"
    ONE_WEEK = "1W"
    ONE_MONTH = "1M"
    THREE_MONTHS = "3M"
    SIX_MONTHS = "6M"
    ONE_YEAR = "1Y"
    YTD = "YTD"


# Labels emitted by the remote functions.
FUNCTION_SOURCE_LIVE = "live"
FUNCTION_SOURCE_CACHE = "cache"
FUNCTION_SOURCE_CACHE_FALLBACK = "cache_fallback"
