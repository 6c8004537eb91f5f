"""Configuration helpers for the pool monitor."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple
import os


DEFAULT_WS_URL = "wss://api.mainnet-beta.solana.com"
DEFAULT_DISCOVERY_URL = "https://quote-api.jup.ag/v6/indexed-route-map"
DEFAULT_OUTPUT_PATH = "pool_updates.csv"


class PoolMonitorError(Exception):
    """Base class for errors raised by the pool monitor."""


class InvalidPairError(PoolMonitorError, ValueError):
    """Raised when a pair is not formatted as BASE/QUOTE."""


def _float_env(key: str, default: float) -> float:
    raw = os.environ.get(key)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _int_env(key: str, default: int) -> int:
    raw = os.environ.get(key)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _bool_env(key: str, default: bool) -> bool:
    raw = os.environ.get(key)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """Runtime settings with environment overrides."""

    ws_url: str = os.environ.get("POOL_MONITOR_WS_URL", DEFAULT_WS_URL)
    discovery_url: str = os.environ.get("POOL_MONITOR_DISCOVERY_URL", DEFAULT_DISCOVERY_URL)
    commitment: str = os.environ.get("POOL_MONITOR_COMMITMENT", "confirmed")
    encoding: str = os.environ.get("POOL_MONITOR_ENCODING", "jsonParsed")
    ping_interval: float = _float_env("POOL_MONITOR_WS_PING_INTERVAL", 20.0)
    reconnect: bool = _bool_env("POOL_MONITOR_RECONNECT", False)
    reconnect_base_delay: float = _float_env("POOL_MONITOR_RECONNECT_BASE", 0.5)
    reconnect_max_delay: float = _float_env("POOL_MONITOR_RECONNECT_MAX", 30.0)
    reconnect_max_attempts: int = _int_env("POOL_MONITOR_RECONNECT_MAX_ATTEMPTS", 0)
    ring_size: int = _int_env("POOL_MONITOR_RING_SIZE", 10)
    queue_size: int = _int_env("POOL_MONITOR_QUEUE_SIZE", 10_000)
    http_timeout: float = _float_env("POOL_MONITOR_HTTP_TIMEOUT", 10.0)
    output_path: str = os.environ.get("POOL_MONITOR_OUTPUT", DEFAULT_OUTPUT_PATH)
    log_level: str = os.environ.get("POOL_MONITOR_LOG_LEVEL", "INFO")


settings = Settings()


def parse_pair(pair: str) -> Tuple[str, str]:
    """Split a ``BASE/QUOTE`` pair into its two mint identifiers."""

    parts = [part.strip() for part in pair.split("/")]
    if len(parts) != 2 or not all(parts):
        raise InvalidPairError(f"invalid pair {pair!r}: expected BASE/QUOTE")
    return parts[0], parts[1]


@dataclass(frozen=True)
class MonitorConfig:
    """Options for one monitoring run."""

    pair: str
    output_path: str = settings.output_path
    owner_filter: Optional[str] = None
    reconnect: bool = settings.reconnect

    def __post_init__(self) -> None:
        parse_pair(self.pair)

    @property
    def base(self) -> str:
        return parse_pair(self.pair)[0]

    @property
    def quote(self) -> str:
        return parse_pair(self.pair)[1]


__all__ = [
    "InvalidPairError",
    "MonitorConfig",
    "PoolMonitorError",
    "Settings",
    "parse_pair",
    "settings",
]
