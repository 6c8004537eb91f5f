"""Low-level WebSocket client utilities."""

from __future__ import annotations

import logging
import random
from typing import Any, AsyncContextManager, AsyncIterator, Callable, Optional, Protocol, Union

import orjson
import websockets

from .config import settings


Frame = Union[str, bytes]


class Connection(Protocol):
    """The part of a websocket connection the listeners rely on."""

    async def send(self, message: str) -> None: ...

    def __aiter__(self) -> AsyncIterator[Frame]: ...


Connector = Callable[[str], AsyncContextManager[Connection]]


def connect_account(url: str) -> AsyncContextManager[Connection]:
    """Open a websocket to ``url``; keepalive pings are answered by the client."""
    return websockets.connect(
        url,
        ping_interval=settings.ping_interval,
        ping_timeout=settings.ping_interval + 5,
        close_timeout=10,
        max_queue=None,
    )


def subscribe_request(
    account: str,
    *,
    request_id: int = 1,
    encoding: str = settings.encoding,
    commitment: str = settings.commitment,
) -> dict:
    return {
        "jsonrpc": "2.0",
        "id": request_id,
        "method": "accountSubscribe",
        "params": [account, {"encoding": encoding, "commitment": commitment}],
    }


def encode(message: dict) -> str:
    return orjson.dumps(message).decode("utf-8")


async def iter_payloads(ws: Connection, logger: logging.Logger) -> AsyncIterator[Any]:
    """Yield decoded JSON payloads, skipping frames that are not valid JSON."""
    async for raw in ws:
        try:
            payload = orjson.loads(raw)
        except orjson.JSONDecodeError:
            logger.debug("Ignoring malformed JSON: %s", raw)
            continue
        yield payload


class RetryPolicy(Protocol):
    def should_retry(self, attempt: int, error: Optional[BaseException]) -> Optional[float]:
        """Return the delay before reconnect attempt ``attempt``, or ``None`` to give up."""


class NoRetry:
    """Never reconnect; a failed or closed subscription ends the listener."""

    def should_retry(self, attempt: int, error: Optional[BaseException]) -> Optional[float]:
        return None


class ExponentialBackoff:
    """Doubling delay capped at ``max_delay``, with jitter."""

    def __init__(
        self,
        base_delay: float = settings.reconnect_base_delay,
        max_delay: float = settings.reconnect_max_delay,
        max_attempts: Optional[int] = None,
        *,
        jitter: bool = True,
    ) -> None:
        self._base = base_delay
        self._max = max_delay
        self._max_attempts = max_attempts
        self._jitter = jitter

    def should_retry(self, attempt: int, error: Optional[BaseException]) -> Optional[float]:
        if self._max_attempts is not None and attempt > self._max_attempts:
            return None
        # 2 ** 1024 no longer converts to float
        delay = min(self._base * (2 ** min(max(attempt - 1, 0), 32)), self._max)
        if self._jitter:
            delay += random.uniform(0.0, min(1.0, delay / 2))
        return delay


def default_retry_policy(reconnect: bool = settings.reconnect) -> RetryPolicy:
    if not reconnect:
        return NoRetry()
    max_attempts = settings.reconnect_max_attempts or None
    return ExponentialBackoff(max_attempts=max_attempts)


__all__ = [
    "Connection",
    "Connector",
    "ExponentialBackoff",
    "NoRetry",
    "RetryPolicy",
    "connect_account",
    "default_retry_policy",
    "encode",
    "iter_payloads",
    "subscribe_request",
]
