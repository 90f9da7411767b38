from datetime import date
from typing import Any

import httpx

from wealth_manager.telemetry import get_logger


logger = get_logger(__name__)


class MarketDataClient:
    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        timeout_seconds: float = 10.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds
        self.max_network_retries = 1

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        url = f"{self.base_url}{path}"
        attempts = self.max_network_retries + 1
        last_error: Exception | None = None

        for attempt in range(attempts):
            try:
                async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                    response = await client.get(url, headers=self._headers(), params=params)
                response.raise_for_status()
                logger.debug(
                    "market_data_http_success",
                    extra={
                        "url": url,
                        "status_code": response.status_code,
                        "attempt": attempt + 1,
                    },
                )
                return response.json()
            except (httpx.RequestError, httpx.TimeoutException) as exc:
                last_error = exc
                logger.warning(
                    "market_data_http_retryable_error",
                    extra={
                        "url": url,
                        "attempt": attempt + 1,
                        "error": str(exc),
                    },
                )
                if attempt == attempts - 1:
                    raise

        if last_error:
            raise last_error

        raise RuntimeError("Unexpected request failure without a captured exception")

    async def get_prices(self, symbol: str, start: date | None = None, end: date | None = None) -> Any:
        params: dict[str, Any] = {}
        if start:
            params["start"] = start.isoformat()
        if end:
            params["end"] = end.isoformat()
        return await self._get(f"/api/financial-data/prices/{symbol}", params=params or None)

    async def get_fundamentals(self, symbol: str) -> Any:
        return await self._get(f"/api/financial-data/fundamentals/{symbol}")
