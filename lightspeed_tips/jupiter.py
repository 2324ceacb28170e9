import logging
from typing import Any, Optional, Protocol

import aiohttp

from .config import DEFAULT_JUPITER_API

logger = logging.getLogger(__name__)


class AggregatorError(Exception):
    """Non-success answer from the swap aggregator."""

    def __init__(self, status: int, message: str, body: Any = None):
        super().__init__(f"HTTP {status}: {message}")
        self.status = status
        self.message = message
        self.body = body

    @property
    def rate_limited(self) -> bool:
        return self.status == 429

    @property
    def bad_request(self) -> bool:
        return self.status == 400

    def describe(self) -> str:
        if self.rate_limited:
            return "Rate limited. Try again in a few seconds."
        if self.bad_request:
            return "Bad request. Check your parameters."
        return f"Aggregator request failed with HTTP {self.status}."


class SwapAggregator(Protocol):
    async def get_quote(
        self,
        input_mint: str,
        output_mint: str,
        amount: int,
        slippage_bps: int,
    ) -> dict[str, Any]: ...

    async def get_swap_instructions(
        self,
        quote: dict[str, Any],
        user_public_key: str,
        wrap_and_unwrap_sol: bool = True,
    ) -> dict[str, Any]: ...


def describe_route(quote: dict[str, Any]) -> str:
    labels = [
        step.get("swapInfo", {}).get("label", "?")
        for step in quote.get("routePlan") or []
    ]
    return " → ".join(labels) if labels else "n/a"


class JupiterClient:
    def __init__(self, base_url: str = DEFAULT_JUPITER_API, timeout: float = 30):
        self.base_url = base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    async def get_quote(
        self,
        input_mint: str,
        output_mint: str,
        amount: int,
        slippage_bps: int,
    ) -> dict[str, Any]:
        params = {
            "inputMint": input_mint,
            "outputMint": output_mint,
            "amount": str(amount),
            "slippageBps": str(slippage_bps),
            "onlyDirectRoutes": "false",
            "asLegacyTransaction": "false",
        }
        return await self._request("GET", "/quote", params=params)

    async def get_swap_instructions(
        self,
        quote: dict[str, Any],
        user_public_key: str,
        wrap_and_unwrap_sol: bool = True,
    ) -> dict[str, Any]:
        payload = {
            "quoteResponse": quote,
            "userPublicKey": user_public_key,
            "wrapAndUnwrapSol": wrap_and_unwrap_sol,
            "dynamicComputeUnitLimit": True,
        }
        data = await self._request("POST", "/swap-instructions", json=payload)
        if not data:
            raise AggregatorError(200, "No instructions received from Jupiter")
        return data

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            async with session.request(method, url, **kwargs) as response:
                if response.status >= 400:
                    raise AggregatorError(
                        response.status,
                        response.reason or "error",
                        await _read_body(response),
                    )
                data: Optional[Any] = await response.json(content_type=None)

        if data is not None and not isinstance(data, dict):
            raise AggregatorError(response.status, f"{url} returned a non-object payload", data)
        return data or {}


async def _read_body(response: aiohttp.ClientResponse) -> Any:
    text = await response.text()
    try:
        return await response.json(content_type=None)
    except ValueError:
        return text
