from fastapi import APIRouter

from marketboard.dependencies import FxServiceDep
from marketboard.fx.schemas import CurrencyConversion, FxRate
from marketboard.market.models import Currency, Market

router = APIRouter()


@router.get("/usd-ars", response_model=FxRate)
async def get_usd_ars_rate(service: FxServiceDep) -> FxRate:
    return await service.get_usd_ars_rate()


@router.get("/conversion", response_model=CurrencyConversion)
async def get_conversion(market: Market, currency: Currency, service: FxServiceDep) -> CurrencyConversion:
    return await service.get_conversion(market, currency)
