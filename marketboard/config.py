from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_prefix": "MB_", "env_file": ".env", "env_file_encoding": "utf-8"}

    # Upstream providers
    alpha_vantage_api_key: str = Field(default="demo")
    alpha_vantage_url: str = Field(default="https://www.alphavantage.co/query")
    yahoo_search_url: str = Field(default="https://query2.finance.yahoo.com/v1/finance/search")
    fx_url: str = Field(default="https://open.er-api.com/v6/latest/USD")
    functions_url: str = Field(default="")
    http_timeout_seconds: float = Field(default=10.0, gt=0)

    allow_mock_fallback: bool = Field(default=False)

    # Client-side caches
    ranking_cache_ttl_seconds: int = Field(default=300, ge=0)
    top_movers_ttl_seconds: int = Field(default=60, ge=0)
    top_movers_pool_size: int = Field(default=24, ge=1)
    detail_cache_ttl_seconds: int = Field(default=60, ge=0)
    company_name_ttl_seconds: int = Field(default=86400, ge=0)
    company_profile_ttl_seconds: int = Field(default=43200, ge=0)
    fx_cache_ttl_seconds: int = Field(default=240, ge=0)
    name_lookup_budget: int = Field(default=2, ge=0)

    # Server-side (remote function) caches
    ar_market_cache_ttl_seconds: int = Field(default=300, ge=0)
    ar_profile_cache_ttl_seconds: int = Field(default=86400, ge=0)
    db_path: str = Field(default="marketboard.db")

    log_level: str = Field(default="INFO")
    log_json: bool = Field(default=True)
    cors_origins: str = Field(default="*")


settings = Settings()
