"""JSON-over-HTTP helpers shared by the upstream adapters.

Every call carries a finite timeout. Transport and status failures surface as
``ProviderTransportError`` so callers only handle the application taxonomy.
"""

from typing import Any

import httpx
import structlog

from marketboard.exceptions import ProviderTransportError

logger = structlog.get_logger()


async def _send(
    method: str,
    url: str,
    *,
    timeout: float,
    client: httpx.AsyncClient | None,
    **kwargs: Any,
) -> httpx.Response:
    if client is not None:
        return await client.request(method, url, timeout=timeout, **kwargs)
    async with httpx.AsyncClient(timeout=timeout) as session:
        return await session.request(method, url, **kwargs)


async def request_json(
    provider: str,
    method: str,
    url: str,
    *,
    timeout: float,
    client: httpx.AsyncClient | None = None,
    **kwargs: Any,
) -> Any:
    try:
        resp = await _send(method, url, timeout=timeout, client=client, **kwargs)
        resp.raise_for_status()
        return resp.json()
    except httpx.HTTPStatusError as exc:
        status = exc.response.status_code
        logger.warning("upstream_http_status", provider=provider, status=status)
        raise ProviderTransportError(provider, f"HTTP {status}", status_code=status) from exc
    except httpx.HTTPError as exc:
        logger.warning("upstream_http_error", provider=provider, error=repr(exc))
        raise ProviderTransportError(provider, str(exc) or type(exc).__name__) from exc
    except ValueError as exc:
        logger.warning("upstream_invalid_json", provider=provider)
        raise ProviderTransportError(provider, "invalid JSON body") from exc


async def get_json(
    provider: str,
    url: str,
    *,
    params: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
    timeout: float,
    client: httpx.AsyncClient | None = None,
) -> Any:
    return await request_json(
        provider, "GET", url, params=params, headers=headers, timeout=timeout, client=client
    )
