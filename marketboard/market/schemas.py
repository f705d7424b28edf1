from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator
from pydantic.alias_generators import to_camel

from marketboard.market.freshness import freshness_label as label_for_freshness
from marketboard.market.freshness import map_source_to_freshness, source_hint
from marketboard.market.models import DataSource, DetailRange, Freshness, Market


class ValueModel(BaseModel):
    """Immutable value object serialised with camelCase keys."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)


class SparklinePoint(ValueModel):
    timestamp: int  # epoch millis
    value: float = Field(allow_inf_nan=False)


class Stock(ValueModel):
    id: str
    ticker: str
    company_name: str | None = None
    market: Market
    price: float = Field(gt=0, allow_inf_nan=False)
    percent_change: float = Field(allow_inf_nan=False)
    sparkline: list[SparklinePoint] = Field(default_factory=list)


class RankingResult(ValueModel):
    stocks: list[Stock] = Field(default_factory=list, max_length=10)
    source: DataSource
    stale: bool | None = None

    @model_validator(mode="after")
    def _unavailable_is_empty(self) -> "RankingResult":
        if self.source == DataSource.UNAVAILABLE and self.stocks:
            raise ValueError("UNAVAILABLE rankings cannot carry stocks")
        return self

    @computed_field
    @property
    def freshness(self) -> Freshness:
        return map_source_to_freshness(self.source, self.stale)

    @computed_field
    @property
    def freshness_label(self) -> str:
        return label_for_freshness(self.freshness)

    @computed_field
    @property
    def hint(self) -> str:
        return source_hint(self.source, self.stale)


class StockDetail(ValueModel):
    ticker: str
    market: Market
    price: float = Field(ge=0, allow_inf_nan=False)
    percent_change: float = Field(allow_inf_nan=False)
    series: list[SparklinePoint] = Field(default_factory=list)
    range: DetailRange
    source: DataSource
    last_updated_at: str
    stale: bool | None = None

    @computed_field
    @property
    def freshness(self) -> Freshness:
        return map_source_to_freshness(self.source, self.stale)

    @computed_field
    @property
    def freshness_label(self) -> str:
        return label_for_freshness(self.freshness)

    @computed_field
    @property
    def hint(self) -> str:
        return source_hint(self.source, self.stale)


class CompanyProfile(ValueModel):
    ticker: str
    market: Market
    company_name: str
    description: str | None = None
    sector: str | None = None
    industry: str | None = None
    market_cap: float | None = Field(default=None, gt=0, allow_inf_nan=False)
    exchange: str | None = None
    country: str | None = None
    website: str | None = None
    source: DataSource
    last_updated_at: str
