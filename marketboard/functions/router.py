from typing import Any

from fastapi import APIRouter, Request

from marketboard.dependencies import ArgentinaMarketFunctionDep, ArgentinaProfileFunctionDep
from marketboard.functions.client import ARGENTINA_MARKET_FUNCTION, ARGENTINA_PROFILE_FUNCTION
from marketboard.functions.schemas import MarketFunctionResponse, ProfileFunctionResponse

router = APIRouter()


async def _read_body(request: Request) -> dict[str, Any]:
    # A missing or malformed body is treated as an empty request.
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


@router.post(
    f"/{ARGENTINA_MARKET_FUNCTION}",
    response_model=MarketFunctionResponse,
    response_model_exclude_none=True,
)
async def fetch_argentina_market(
    request: Request, function: ArgentinaMarketFunctionDep
) -> MarketFunctionResponse:
    return await function.handle(await _read_body(request))


@router.post(
    f"/{ARGENTINA_PROFILE_FUNCTION}",
    response_model=ProfileFunctionResponse,
    response_model_exclude_none=True,
)
async def fetch_argentina_company_profile(
    request: Request, function: ArgentinaProfileFunctionDep
) -> ProfileFunctionResponse:
    return await function.handle(await _read_body(request))
