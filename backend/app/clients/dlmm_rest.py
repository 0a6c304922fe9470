"""REST client for an external DLMM pool adapter service."""

import asyncio
import logging
from typing import Any

import httpx

from core.errors import PoolAdapterError
from core.models import Bins

from app.clients.pool_adapter import LiquidityResult

logger = logging.getLogger(__name__)


class RateLimiter:
    """Simple rate limiter for API calls."""

    def __init__(self, calls_per_minute: int = 600):
        self.calls_per_minute = calls_per_minute
        self.interval = 60.0 / calls_per_minute
        self.last_call = 0.0
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        """Wait if necessary to respect rate limit."""
        async with self._lock:
            now = asyncio.get_event_loop().time()
            wait_time = self.last_call + self.interval - now
            if wait_time > 0:
                await asyncio.sleep(wait_time)
            self.last_call = asyncio.get_event_loop().time()


def _liquidity_result(data: dict[str, Any]) -> LiquidityResult:
    try:
        return LiquidityResult(
            liquidity=int(data["liquidity"]),
            position_liquidity=int(data["position_liquidity"]),
            token_a_amount=int(data.get("token_a_amount", 0)),
            token_b_amount=int(data.get("token_b_amount", 0)),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise PoolAdapterError(f"malformed liquidity response: {data!r}") from e


def _int_field(data: Any, key: str) -> int:
    try:
        return int(data[key])
    except (KeyError, TypeError, ValueError) as e:
        raise PoolAdapterError(f"malformed response, no integer {key!r}: {data!r}") from e


class DlmmRestClient:
    """PoolAdapter that forwards calls to a DLMM adapter service over HTTP.

    Every call is a single request; the client never retries, so a failed
    call surfaces immediately as ``PoolAdapterError`` and the vault operation
    aborts.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url
        self.api_key = api_key
        self.timeout = timeout
        self.rate_limiter = RateLimiter()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            headers = {}
            if self.api_key:
                headers["X-API-KEY"] = self.api_key
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        endpoint: str,
        json: dict[str, Any] | None = None,
    ) -> Any:
        """Make an API request with rate limiting."""
        await self.rate_limiter.acquire()
        client = await self._get_client()
        try:
            response = await client.request(method, endpoint, json=json)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            raise PoolAdapterError(
                f"{method} {endpoint} -> {e.response.status_code}: {e.response.text}"
            ) from e
        except httpx.HTTPError as e:
            raise PoolAdapterError(f"{method} {endpoint}: {e}") from e
        except ValueError as e:
            raise PoolAdapterError(f"{method} {endpoint}: invalid JSON response") from e

    async def add_liquidity(self, position: str, amount: int, bins: Bins) -> LiquidityResult:
        data = await self._request(
            "POST",
            f"/positions/{position}/add-liquidity",
            json={"amount": amount, "bins": list(bins)},
        )
        return _liquidity_result(data)

    async def remove_liquidity(
        self, position: str, bins: Bins, amount: int | None = None
    ) -> LiquidityResult:
        data = await self._request(
            "POST",
            f"/positions/{position}/remove-liquidity",
            json={"bins": list(bins), "amount": amount},
        )
        return _liquidity_result(data)

    async def quote_fees(self, position: str) -> int:
        data = await self._request("GET", f"/positions/{position}/fees")
        return _int_field(data, "fee_amount")

    async def harvest_fee(self, position: str, fee_token_account: str) -> int:
        data = await self._request(
            "POST",
            f"/positions/{position}/harvest-fee",
            json={"fee_token_account": fee_token_account},
        )
        return _int_field(data, "fee_amount")

    async def get_position_liquidity(self, position: str) -> int:
        data = await self._request("GET", f"/positions/{position}")
        return _int_field(data, "liquidity")
