from fastapi import APIRouter

from marketboard.dependencies import ArRankingServiceDep, UsRankingServiceDep
from marketboard.market.models import Market, Timeframe
from marketboard.market.schemas import RankingResult

router = APIRouter()


@router.get("/{market}", response_model=RankingResult)
async def get_ranking(
    market: Market,
    us_service: UsRankingServiceDep,
    ar_service: ArRankingServiceDep,
    timeframe: Timeframe = Timeframe.ONE_DAY,
) -> RankingResult:
    service = us_service if market == Market.US else ar_service
    return await service.get_ranking(timeframe)
