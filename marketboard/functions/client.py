"""Client side of the AR remote functions.

``HttpFunctionClient`` POSTs to ``{functions_url}/{name}``; ``LocalFunctionClient``
dispatches to the in-process handlers. Both return the same camelCase JSON
object the HTTP route would have produced.
"""

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
import structlog
from pydantic import BaseModel

from marketboard.exceptions import ConfigurationError, ProviderTransportError
from marketboard.http import request_json
from marketboard.market.models import FUNCTION_SOURCE_LIVE, DataSource

logger = structlog.get_logger()

PROVIDER = "functions"

ARGENTINA_MARKET_FUNCTION = "fetch-argentina-market"
ARGENTINA_PROFILE_FUNCTION = "fetch-argentina-company-profile"

FunctionHandler = Callable[[dict[str, Any]], Awaitable[BaseModel]]


def map_ranking_source(label: Any) -> DataSource:
    # Rankings only distinguish live from everything else.
    return DataSource.LIVE if label == FUNCTION_SOURCE_LIVE else DataSource.CACHE


def map_function_source(label: Any) -> DataSource:
    match label:
        case "live":
            return DataSource.LIVE
        case "cache" | "cache_fallback":
            return DataSource.CACHE
        case "mock":
            return DataSource.MOCK
        case _:
            return DataSource.UNAVAILABLE


class FunctionClient(ABC):
    @abstractmethod
    async def invoke(self, name: str, body: dict[str, Any]) -> dict[str, Any]: ...


class HttpFunctionClient(FunctionClient):
    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not base_url:
            raise ConfigurationError("Remote functions URL is not configured")
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._client = client

    async def invoke(self, name: str, body: dict[str, Any]) -> dict[str, Any]:
        data = await request_json(
            PROVIDER,
            "POST",
            f"{self._base_url}/{name}",
            json=body,
            timeout=self._timeout,
            client=self._client,
        )
        if not isinstance(data, dict):
            raise ProviderTransportError(PROVIDER, f"{name} returned a non-object body")
        return data


class LocalFunctionClient(FunctionClient):
    def __init__(self, handlers: dict[str, FunctionHandler]) -> None:
        self._handlers = handlers

    async def invoke(self, name: str, body: dict[str, Any]) -> dict[str, Any]:
        handler = self._handlers.get(name)
        if handler is None:
            raise ConfigurationError(f"No handler registered for function '{name}'")
        logger.debug("function_invoked_locally", function=name)
        response = await handler(dict(body))
        return response.model_dump(mode="json", by_alias=True, exclude_none=True)
