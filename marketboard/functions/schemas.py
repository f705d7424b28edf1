from pydantic import Field

from marketboard.market.schemas import CompanyProfile, Stock, ValueModel


class MarketFunctionResponse(ValueModel):
    source: str  # "live" | "cache" | "cache_fallback"
    stale: bool | None = None
    timeframe: str
    stocks: list[Stock] = Field(default_factory=list)
    request_id: str


class ProfileFunctionResponse(ValueModel):
    source: str
    stale: bool | None = None
    profile: CompanyProfile
    request_id: str
