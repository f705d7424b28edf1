"""Price-series normalisation, range windowing and snapshot construction.

Everything here is pure: no I/O, no clocks read implicitly. Timestamps are
epoch milliseconds throughout.

Provider payloads are decoded into a tagged result (``ParsedSeries`` or
``SeriesFailure``) so callers branch on one value instead of probing the raw
mapping for sentinel keys.
"""

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime, tzinfo
from enum import StrEnum
from typing import Any

from dateutil.relativedelta import relativedelta

from marketboard.market.models import DetailRange
from marketboard.market.schemas import SparklinePoint

HOUR_MS = 60 * 60 * 1000
DAY_MS = 24 * HOUR_MS

INTRADAY_SERIES_PREFIX = "Time Series ("
DAILY_SERIES_KEY = "Time Series (Daily)"
CLOSE_FIELD = "4. close"
PROVIDER_ERROR_KEYS = ("Note", "Information", "Error Message")


class Granularity(StrEnum):
    intraday = "intraday"
    daily = "daily"


class SeriesFailureReason(StrEnum):
    provider_error = "provider_error"
    malformed = "malformed"
    missing_series = "missing_series"


@dataclass(frozen=True)
class ParsedSeries:
    points: list[SparklinePoint]


@dataclass(frozen=True)
class SeriesFailure:
    reason: SeriesFailureReason
    message: str


SeriesDecodeResult = ParsedSeries | SeriesFailure


@dataclass(frozen=True)
class Snapshot:
    price: float
    percent_change: float
    sparkline: list[SparklinePoint]


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def to_finite_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def parse_percent(text: Any) -> float | None:
    """Parse provider percent strings such as ``"133.33%"`` or ``"-2.1%"``."""
    if isinstance(text, str):
        text = text.strip().replace("%", "")
    return to_finite_float(text)


def _parse_timestamp(raw: Any) -> int | None:
    if not isinstance(raw, str):
        return None
    try:
        parsed = datetime.fromisoformat(raw.strip())
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return round(parsed.timestamp() * 1000)


def provider_error_message(payload: Mapping[str, Any]) -> str | None:
    for key in PROVIDER_ERROR_KEYS:
        value = payload.get(key)
        if value:
            return value if isinstance(value, str) else f"{key} returned by provider"
    return None


def is_provider_error(payload: Mapping[str, Any]) -> bool:
    return provider_error_message(payload) is not None


def _locate_series(payload: Mapping[str, Any], granularity: Granularity) -> Any:
    if granularity == Granularity.daily:
        return payload.get(DAILY_SERIES_KEY)
    for key in payload:
        if isinstance(key, str) and key.startswith(INTRADAY_SERIES_PREFIX):
            return payload[key]
    return None


def parse_series(payload: Mapping[str, Any], granularity: Granularity) -> list[SparklinePoint]:
    raw_series = _locate_series(payload, granularity)
    if not isinstance(raw_series, Mapping):
        return []

    points: list[SparklinePoint] = []
    for raw_timestamp, row in raw_series.items():
        if not isinstance(row, Mapping):
            continue
        timestamp = _parse_timestamp(raw_timestamp)
        value = to_finite_float(row.get(CLOSE_FIELD))
        if timestamp is None or value is None:
            continue
        points.append(SparklinePoint(timestamp=timestamp, value=value))

    return sort_series(points)


def decode_series(payload: Any, granularity: Granularity) -> SeriesDecodeResult:
    if not isinstance(payload, Mapping):
        return SeriesFailure(SeriesFailureReason.malformed, "payload is not a JSON object")

    error_message = provider_error_message(payload)
    if error_message is not None:
        return SeriesFailure(SeriesFailureReason.provider_error, error_message)

    points = parse_series(payload, granularity)
    if not points:
        return SeriesFailure(
            SeriesFailureReason.missing_series, f"no {granularity} series in payload"
        )
    return ParsedSeries(points)


def sort_series(points: Iterable[SparklinePoint]) -> list[SparklinePoint]:
    # Stable sort: equal timestamps keep their original order.
    return sorted(points, key=lambda point: point.timestamp)


# ---------------------------------------------------------------------------
# Windowing
# ---------------------------------------------------------------------------


def range_start(range_: str, reference_ms: int, tz: tzinfo | None = None) -> int:
    """Lookback boundary for ``range_`` relative to ``reference_ms``.

    Month and year offsets use calendar arithmetic in local time (or ``tz``), so
    "1M" before March 31st is February 28th/29th rather than 30 days back.
    """
    match range_:
        case DetailRange.ONE_HOUR:
            return reference_ms - HOUR_MS
        case DetailRange.ONE_DAY:
            return reference_ms - DAY_MS
        case DetailRange.ONE_WEEK:
            return reference_ms - 7 * DAY_MS

    reference = datetime.fromtimestamp(reference_ms / 1000, tz=tz)
    match range_:
        case DetailRange.ONE_MONTH:
            start = reference - relativedelta(months=1)
        case DetailRange.THREE_MONTHS:
            start = reference - relativedelta(months=3)
        case DetailRange.SIX_MONTHS:
            start = reference - relativedelta(months=6)
        case DetailRange.ONE_YEAR:
            start = reference - relativedelta(years=1)
        case DetailRange.YTD:
            start = reference.replace(month=1, day=1, hour=0, minute=0, second=0, microsecond=0)
        case _:
            raise ValueError(f"Unknown range: {range_}")
    return round(start.timestamp() * 1000)


def slice_by_range(
    series: Iterable[SparklinePoint],
    range_: str,
    reference_ms: int | None = None,
) -> list[SparklinePoint]:
    ordered = sort_series(series)
    if len(ordered) <= 2:
        return ordered

    latest = reference_ms if reference_ms is not None else ordered[-1].timestamp
    start = range_start(range_, latest)
    window = [point for point in ordered if start <= point.timestamp <= latest]
    if len(window) >= 2:
        return window

    # Sparse data: keep a drawable two-point line.
    return ordered[-2:]


def percent_change(series: list[SparklinePoint]) -> float:
    if len(series) < 2:
        return 0.0

    first = series[0].value
    last = series[-1].value
    if not math.isfinite(first) or not math.isfinite(last) or first <= 0:
        return 0.0
    return ((last - first) / first) * 100


# ---------------------------------------------------------------------------
# Snapshots
# ---------------------------------------------------------------------------


def build_snapshot(
    series: Iterable[SparklinePoint],
    range_: str,
    reference_ms: int | None = None,
) -> Snapshot | None:
    ordered = sort_series(series)
    if len(ordered) < 2:
        return None

    latest = reference_ms if reference_ms is not None else ordered[-1].timestamp
    sliced = slice_by_range(ordered, range_, latest)
    if len(sliced) < 2:
        return None

    return Snapshot(
        price=sliced[-1].value,
        percent_change=percent_change(sliced),
        sparkline=sliced,
    )


def build_hourly_snapshot(series: Iterable[SparklinePoint]) -> Snapshot | None:
    """One-hour change measured from the last point at or before latest - 1h.

    When no point is that old the first point is used as the baseline.
    """
    ordered = sort_series(series)
    if len(ordered) < 2:
        return None

    latest = ordered[-1]
    cutoff = range_start(DetailRange.ONE_HOUR, latest.timestamp)
    baseline = next(
        (point for point in reversed(ordered) if point.timestamp <= cutoff),
        ordered[0],
    )
    if baseline.value <= 0 or latest.value <= 0:
        return None

    return Snapshot(
        price=latest.value,
        percent_change=((latest.value - baseline.value) / baseline.value) * 100,
        sparkline=[point for point in ordered if point.timestamp >= baseline.timestamp],
    )


def implied_baseline(price: float, percent: float) -> float:
    if percent <= -100:
        return price
    baseline = price / (1 + percent / 100)
    if not math.isfinite(baseline) or baseline <= 0:
        return price
    return baseline


def build_fallback_snapshot(price: float, percent: float, reference_ms: int) -> Snapshot:
    """Two-point line from a self-reported price and daily percent change."""
    return Snapshot(
        price=price,
        percent_change=percent,
        sparkline=[
            SparklinePoint(timestamp=reference_ms - DAY_MS, value=implied_baseline(price, percent)),
            SparklinePoint(timestamp=reference_ms, value=price),
        ],
    )
