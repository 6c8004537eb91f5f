"""Lifecycle manager for the account listeners and the shared sink."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Optional

from .config import MonitorConfig, settings
from .discovery import NoAccountsError, discover_accounts
from .listener import AccountListener, ListenerState
from .sink import CsvRowWriter, FanInSink
from .ws_client import Connector, RetryPolicy, connect_account, default_retry_policy


Discover = Callable[[str], Awaitable[List[str]]]


class Supervisor:
    """Discovers accounts, runs one listener per account and drains on shutdown."""

    def __init__(
        self,
        config: MonitorConfig,
        *,
        discover: Discover = discover_accounts,
        sink: Optional[FanInSink] = None,
        connect: Connector = connect_account,
        retry_policy: Optional[RetryPolicy] = None,
        ws_url: str = settings.ws_url,
    ) -> None:
        self._config = config
        self._discover = discover
        self._sink = sink or FanInSink(CsvRowWriter(config.output_path))
        self._connect = connect
        self._retry_policy = retry_policy
        self._ws_url = ws_url
        self._listeners: Dict[str, AccountListener] = {}
        self._tasks: Dict[str, asyncio.Task] = {}
        self._stopping = False
        self._stop_event: Optional[asyncio.Event] = None
        self._logger = logging.getLogger("pool_monitor.supervisor")

    @property
    def sink(self) -> FanInSink:
        return self._sink

    @property
    def accounts(self) -> List[str]:
        return list(self._listeners)

    def listener_states(self) -> Dict[str, ListenerState]:
        return {account: listener.state for account, listener in self._listeners.items()}

    def is_running(self) -> bool:
        return any(not task.done() for task in self._tasks.values())

    def _stop_requested(self) -> bool:
        return self._stopping or (self._stop_event is not None and self._stop_event.is_set())

    async def start(self, stop_event: Optional[asyncio.Event] = None) -> List[str]:
        """Discover accounts and spawn their listeners.

        Nothing is spawned once ``stop()`` has been called or ``stop_event``
        is set, including while discovery is still in flight.
        """
        if stop_event is not None:
            self._stop_event = stop_event
        if self._tasks:
            return self.accounts
        accounts = await self._discover(self._config.pair)
        if not accounts:
            raise NoAccountsError(f"no pool accounts found for pair {self._config.pair}")
        if self._stop_requested():
            self._logger.info("Shutdown requested during discovery; no listeners started")
            return []

        await self._sink.start()
        for account in dict.fromkeys(accounts):
            if self._stop_requested():
                break
            self._spawn(account)
        self._logger.info("Monitoring %s accounts for %s", len(self._tasks), self._config.pair)
        return self.accounts

    def _spawn(self, account: str) -> None:
        retry = self._retry_policy or default_retry_policy(self._config.reconnect)
        listener = AccountListener(
            account,
            self._sink,
            owner_filter=self._config.owner_filter,
            url=self._ws_url,
            connect=self._connect,
            retry_policy=retry,
        )
        task = asyncio.create_task(listener.run(), name=f"listener-{account}")
        task.add_done_callback(self._on_listener_done)
        self._listeners[account] = listener
        self._tasks[account] = task

    def _on_listener_done(self, task: asyncio.Task) -> None:
        if self._stopping:
            return
        if not task.cancelled() and task.exception() is not None:
            self._logger.error("Listener %s crashed: %s", task.get_name(), task.exception())
        if not self.is_running():
            self._logger.warning("All listeners terminated; waiting for shutdown signal")

    async def join(self) -> None:
        """Wait until every listener has terminated on its own."""
        if self._tasks:
            await asyncio.gather(*self._tasks.values(), return_exceptions=True)

    async def stop(self) -> None:
        self._stopping = True
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        await self._sink.stop()
        self._logger.info("Supervisor stopped")

    async def run(self, stop_event: asyncio.Event) -> None:
        await self.start(stop_event)
        try:
            await stop_event.wait()
            self._logger.info("Shutdown requested; draining %s queued rows", self._sink.qsize())
        finally:
            await self.stop()


__all__ = ["Supervisor"]
