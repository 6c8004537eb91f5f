"""Command line entry point for the pool monitor."""

from __future__ import annotations

import asyncio
import logging
import signal
from typing import Optional

import typer

from .config import MonitorConfig, PoolMonitorError, parse_pair, settings
from .discovery import discover_accounts
from .supervisor import Supervisor


app = typer.Typer(help="Stream token account updates for a trading pair into a CSV file")
logger = logging.getLogger("pool_monitor.cli")


def _install_signal_handlers(stop_event: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()

    def _request_stop(sig: signal.Signals) -> None:
        if stop_event.is_set():
            return
        logger.info("%s received, shutting down", sig.name)
        loop.call_soon_threadsafe(stop_event.set)

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _request_stop, sig)
        except (NotImplementedError, RuntimeError):
            try:
                signal.signal(sig, lambda *_args, _sig=sig: _request_stop(_sig))
            except (ValueError, AttributeError):
                continue


async def _run_monitor(config: MonitorConfig) -> None:
    stop_event = asyncio.Event()
    _install_signal_handlers(stop_event)
    supervisor = Supervisor(config)
    await supervisor.run(stop_event)


@app.command("monitor")
def monitor(
    pair: str = typer.Option(..., help="BASE/QUOTE mint addresses"),
    logfile: str = typer.Option(settings.output_path, "--logfile", "-o", help="Output CSV file path"),
    filter_owner: Optional[str] = typer.Option(None, help="Only log updates from this owner pubkey"),
    reconnect: bool = typer.Option(
        settings.reconnect, "--reconnect/--no-reconnect", help="Reconnect dropped subscriptions with backoff"
    ),
) -> None:
    """Monitor pool token accounts for a pair until interrupted."""
    try:
        config = MonitorConfig(pair=pair, output_path=logfile, owner_filter=filter_owner, reconnect=reconnect)
        asyncio.run(_run_monitor(config))
    except (PoolMonitorError, OSError) as exc:
        logger.error("Monitor failed: %s", exc)
        raise typer.Exit(code=1) from exc


@app.command("fetch-pools")
def fetch_pools(pair: str = typer.Option(..., help="BASE/QUOTE mint addresses")) -> None:
    """List the pool token accounts discovered for a pair."""
    try:
        parse_pair(pair)
        accounts = asyncio.run(discover_accounts(pair))
    except PoolMonitorError as exc:
        logger.error("Discovery failed: %s", exc)
        raise typer.Exit(code=1) from exc
    if not accounts:
        logger.error("No pool accounts found for %s", pair)
        raise typer.Exit(code=1)
    typer.echo(f"Found {len(accounts)} pools:")
    for account in accounts:
        typer.echo(f" - {account}")


@app.callback()
def _configure(
    log_level: str = typer.Option(settings.log_level, "--log-level", help="Logging level"),
) -> None:
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        typer.echo(f"Unknown log level: {log_level}", err=True)
        raise typer.Exit(code=1)
    logging.basicConfig(level=level)


def main() -> None:
    app()


__all__ = ["app", "main"]
