from typing import Annotated

from fastapi import APIRouter, Query

from marketboard.dependencies import DetailServiceDep
from marketboard.market.models import DetailRange, Market
from marketboard.market.schemas import StockDetail

router = APIRouter()


@router.get("/{market}/{ticker}", response_model=StockDetail)
async def get_stock_detail(
    market: Market,
    ticker: str,
    service: DetailServiceDep,
    range_: Annotated[DetailRange, Query(alias="range")] = DetailRange.ONE_DAY,
) -> StockDetail:
    return await service.get_detail(ticker, market, range_)
