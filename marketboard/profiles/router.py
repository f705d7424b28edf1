from fastapi import APIRouter

from marketboard.dependencies import CompanyProfileServiceDep
from marketboard.market.models import Market
from marketboard.market.schemas import CompanyProfile

router = APIRouter()


@router.get("/{market}/{ticker}", response_model=CompanyProfile)
async def get_company_profile(
    market: Market,
    ticker: str,
    service: CompanyProfileServiceDep,
    fallback_name: str | None = None,
) -> CompanyProfile:
    return await service.get_profile(ticker, market, fallback_name)
