from marketboard.market.models import DataSource, Freshness


def map_source_to_freshness(source: DataSource, stale: bool | None = None) -> Freshness:
    if source == DataSource.LIVE and not stale:
        return Freshness.fresh
    if source == DataSource.CACHE or stale:
        return Freshness.stale
    return Freshness.delayed


def freshness_label(freshness: Freshness) -> str:
    match freshness:
        case Freshness.fresh:
            return "Fresh"
        case Freshness.stale:
            return "Cached"
        case _:
            return "Delayed"


def source_hint(source: DataSource, stale: bool | None = None) -> str:
    """Short user-facing note about where the numbers came from."""
    if source == DataSource.UNAVAILABLE:
        return "Data unavailable right now"
    if source == DataSource.MOCK:
        return "Demo data"
    if source == DataSource.LIVE and not stale:
        return "Live market data"
    return "May be delayed"
