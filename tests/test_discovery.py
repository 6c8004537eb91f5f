import asyncio

import httpx
import pytest

from pool_monitor.config import InvalidPairError, MonitorConfig, parse_pair
from pool_monitor.discovery import DiscoveryError, PoolDiscoveryClient


@pytest.fixture
def event_loop():
    loop = asyncio.new_event_loop()
    yield loop
    loop.close()


def fetch(event_loop, handler, pair):
    async def scenario():
        client = PoolDiscoveryClient("https://routes.test/map", transport=httpx.MockTransport(handler))
        async with client:
            return await client.fetch_pool_accounts(pair)

    return event_loop.run_until_complete(scenario())


def test_fetch_returns_accounts_for_pair(event_loop):
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(
            200,
            request=request,
            json={
                "indexedRouteMap": {
                    "BASE": {"QUOTE": ["pool1", "pool2", 3, "pool1"], "OTHER": ["pool9"]},
                }
            },
        )

    accounts = fetch(event_loop, handler, "BASE/QUOTE")

    assert accounts == ["pool1", "pool2"]
    assert len(requests) == 1
    assert str(requests[0].url) == "https://routes.test/map"


def test_unknown_pair_returns_empty(event_loop):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, request=request, json={"indexedRouteMap": {}})

    assert fetch(event_loop, handler, "BASE/QUOTE") == []


def test_non_200_returns_error(event_loop):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, request=request, text="upstream down")

    with pytest.raises(DiscoveryError) as excinfo:
        fetch(event_loop, handler, "A/B")
    assert excinfo.value.status_code == 500
    assert excinfo.value.body == "upstream down"


def test_transport_error_is_wrapped(event_loop):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("no route to host", request=request)

    with pytest.raises(DiscoveryError):
        fetch(event_loop, handler, "A/B")


def test_invalid_pair_format_returns_error(event_loop):
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, request=request, json={"indexedRouteMap": {}})

    with pytest.raises(InvalidPairError):
        fetch(event_loop, handler, "invalid")
    assert calls == []


@pytest.mark.parametrize("pair", ["", "A", "A/", "/B", "A/B/C"])
def test_parse_pair_rejects_malformed(pair):
    with pytest.raises(InvalidPairError):
        parse_pair(pair)


def test_monitor_config_validates_pair():
    config = MonitorConfig(pair="SOL/USDC", owner_filter="ownerX")
    assert (config.base, config.quote) == ("SOL", "USDC")
    assert config.output_path == "pool_updates.csv"
    with pytest.raises(ValueError):
        MonitorConfig(pair="SOLUSDC")
