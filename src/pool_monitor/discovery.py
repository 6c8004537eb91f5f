"""Pool account discovery through the Jupiter route map."""

from __future__ import annotations

import logging
from typing import Any, List, Optional

import httpx

from .config import PoolMonitorError, parse_pair, settings


logger = logging.getLogger("pool_monitor.discovery")


class DiscoveryError(PoolMonitorError):
    """Raised when the route map cannot be fetched."""

    def __init__(self, message: str, *, status_code: Optional[int] = None, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class NoAccountsError(PoolMonitorError):
    """Raised when discovery returns nothing to monitor."""


class PoolDiscoveryClient:
    def __init__(
        self,
        url: str = settings.discovery_url,
        timeout_seconds: float = settings.http_timeout,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._url = url
        self._client = httpx.AsyncClient(timeout=timeout_seconds, transport=transport)

    async def __aenter__(self) -> "PoolDiscoveryClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch_pool_accounts(self, pair: str) -> List[str]:
        """Return the pool token accounts listed for ``pair``, in route-map order."""
        base, quote = parse_pair(pair)
        try:
            response = await self._client.get(self._url, headers={"accept": "application/json"})
        except httpx.TransportError as exc:
            raise DiscoveryError(f"route map request failed: {exc}") from exc

        if response.status_code >= 400:
            raise DiscoveryError(
                f"route map returned {response.status_code}: {response.text}",
                status_code=response.status_code,
                body=response.text,
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise DiscoveryError(f"route map is not valid JSON: {exc}") from exc

        route_map = payload.get("indexedRouteMap") if isinstance(payload, dict) else None
        pools = None
        if isinstance(route_map, dict):
            quotes = route_map.get(base)
            if isinstance(quotes, dict):
                pools = quotes.get(quote)
        if not isinstance(pools, list):
            logger.info("No pools listed for %s/%s", base, quote)
            return []

        accounts: List[str] = []
        seen = set()
        for entry in pools:
            if not isinstance(entry, str) or entry in seen:
                continue
            seen.add(entry)
            accounts.append(entry)
        logger.info("Discovered %s pool accounts for %s/%s", len(accounts), base, quote)
        return accounts


async def discover_accounts(pair: str) -> List[str]:
    async with PoolDiscoveryClient() as client:
        return await client.fetch_pool_accounts(pair)


__all__ = ["DiscoveryError", "NoAccountsError", "PoolDiscoveryClient", "discover_accounts"]
