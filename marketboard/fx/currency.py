import math

from marketboard.market.models import Currency, Market


def native_currency(market: Market) -> Currency:
    return Currency.ARS if market == Market.AR else Currency.USD


def conversion_factor(market: Market, selected: Currency, usd_to_ars: float | None) -> float | None:
    """Multiplier from ``market``'s native currency to ``selected``.

    Returns 1 when no conversion is needed and ``None`` when the rate is
    missing or unusable, so callers can keep native values and flag it.
    """
    if selected == native_currency(market):
        return 1.0

    if usd_to_ars is None or not math.isfinite(usd_to_ars) or usd_to_ars <= 0:
        return None

    if market == Market.US and selected == Currency.ARS:
        return usd_to_ars
    if market == Market.AR and selected == Currency.USD:
        return 1 / usd_to_ars
    return None


def convert_value(value: float, factor: float) -> float:
    return value * factor
