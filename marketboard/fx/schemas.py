from marketboard.market.models import Currency, Market
from marketboard.market.schemas import ValueModel


class FxRate(ValueModel):
    base: Currency = Currency.USD
    quote: Currency = Currency.ARS
    rate: float


class CurrencyConversion(ValueModel):
    market: Market
    native_currency: Currency
    selected_currency: Currency
    rate: float | None = None
    factor: float | None = None
    warning: str | None = None
