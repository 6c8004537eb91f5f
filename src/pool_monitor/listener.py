"""Subscription lifecycle for one monitored account."""

from __future__ import annotations

import asyncio
import logging
import time
from enum import Enum
from typing import Any, Optional

from anyio import sleep
from websockets.exceptions import WebSocketException

from .config import settings
from .dto import Row, decode_notification
from .sink import FanInSink, SinkClosedError
from .state import AccountState
from .ws_client import (
    Connection,
    Connector,
    NoRetry,
    RetryPolicy,
    connect_account,
    encode,
    iter_payloads,
    subscribe_request,
)


logger = logging.getLogger("pool_monitor.listener")

SUBSCRIBE_ID = 1


def _now_s() -> int:
    return int(time.time())


class ListenerState(str, Enum):
    CONNECTING = "connecting"
    SUBSCRIBED = "subscribed"
    STREAMING = "streaming"
    RECONNECTING = "reconnecting"
    TERMINATED = "terminated"


class _Rejected(Exception):
    """The server answered the subscribe request with an error."""


class AccountListener:
    """Streams one account's notifications into the shared sink.

    The listener owns its ``AccountState``; rows for one account reach the
    sink in the order their notifications arrived.
    """

    def __init__(
        self,
        account: str,
        sink: FanInSink,
        *,
        owner_filter: Optional[str] = None,
        url: str = settings.ws_url,
        connect: Connector = connect_account,
        retry_policy: Optional[RetryPolicy] = None,
        ring_size: int = settings.ring_size,
    ) -> None:
        self._account = account
        self._sink = sink
        self._owner_filter = owner_filter
        self._url = url
        self._connect = connect
        self._retry = retry_policy or NoRetry()
        self._account_state = AccountState(ring_size)
        self._state = ListenerState.CONNECTING
        self._emitted = 0

    @property
    def account(self) -> str:
        return self._account

    @property
    def state(self) -> ListenerState:
        return self._state

    @property
    def account_state(self) -> AccountState:
        return self._account_state

    @property
    def emitted(self) -> int:
        return self._emitted

    async def run(self) -> None:
        attempt = 0
        try:
            while True:
                error: Optional[BaseException] = None
                self._state = ListenerState.CONNECTING
                try:
                    async with self._connect(self._url) as ws:
                        await self._subscribe(ws)
                        attempt = 0
                        await self._stream(ws)
                    logger.info("Stream for %s closed", self._account)
                except asyncio.CancelledError:
                    raise
                except (SinkClosedError, _Rejected):
                    return
                except (OSError, WebSocketException, asyncio.TimeoutError) as exc:
                    error = exc
                    logger.warning("%s failed for %s: %s", self._phase(), self._account, exc)
                except Exception as exc:  # pragma: no cover - defensive
                    logger.exception("Unexpected failure for %s: %s", self._account, exc)
                    return

                attempt += 1
                delay = self._retry.should_retry(attempt, error)
                if delay is None:
                    return
                self._state = ListenerState.RECONNECTING
                logger.info("Reconnecting %s in %.2fs (attempt %s)", self._account, delay, attempt)
                await sleep(delay)
        finally:
            self._state = ListenerState.TERMINATED
            logger.info("Listener for %s terminated after %s rows", self._account, self._emitted)

    def _phase(self) -> str:
        if self._state is ListenerState.CONNECTING:
            return "Connect"
        if self._state is ListenerState.SUBSCRIBED:
            return "Subscribe"
        return "Stream"

    async def _subscribe(self, ws: Connection) -> None:
        self._state = ListenerState.SUBSCRIBED
        await ws.send(encode(subscribe_request(self._account, request_id=SUBSCRIBE_ID)))

    async def _stream(self, ws: Connection) -> None:
        self._state = ListenerState.STREAMING
        async for payload in iter_payloads(ws, logger):
            await self._on_payload(payload)

    async def _on_payload(self, payload: Any) -> None:
        if isinstance(payload, dict) and payload.get("id") == SUBSCRIBE_ID:
            if "error" in payload:
                logger.warning("Subscription rejected for %s: %s", self._account, payload["error"])
                raise _Rejected(payload["error"])
            logger.info("Subscribed to %s (subscription %s)", self._account, payload.get("result"))
            return
        observation = decode_notification(payload)
        if observation is None:
            return
        if self._owner_filter is not None and observation.owner != self._owner_filter:
            return
        delta, rolling = self._account_state.apply(observation.value)
        row = Row(
            timestamp=_now_s(),
            slot=observation.slot,
            account=self._account,
            mint=observation.mint,
            owner=observation.owner,
            value=observation.value,
            delta=delta,
            rolling_delta=rolling,
        )
        await self._sink.offer(row)
        self._emitted += 1


__all__ = ["AccountListener", "ListenerState"]
