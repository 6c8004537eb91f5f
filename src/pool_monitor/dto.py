"""Typed representations of account notifications and derived rows."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Optional, Tuple, TypeVar

from pydantic import BaseModel, ConfigDict, Field


T = TypeVar("T")

KeyPath = Tuple[str, ...]

ROW_COLUMNS = (
    "timestamp",
    "slot",
    "account",
    "mint",
    "owner",
    "ui_amount",
    "delta",
    "rolling_delta",
)


def _as_float(value: Any) -> Optional[float]:
    # bool is an int subclass but never a token amount
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    return None


def _as_str(value: Any) -> Optional[str]:
    if isinstance(value, str):
        return value
    return None


def _as_slot(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    if value < 0:
        return None
    return value


def _walk(tree: Any, path: KeyPath) -> Any:
    node = tree
    for key in path:
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node


@dataclass(frozen=True)
class ExtractionRule(Generic[T]):
    """A named lookup of one field in a notification tree.

    Paths are tried in order; the first one that yields a value accepted by
    ``coerce`` wins.
    """

    name: str
    paths: Tuple[KeyPath, ...]
    coerce: Callable[[Any], Optional[T]]

    def extract(self, tree: Any) -> Optional[T]:
        for path in self.paths:
            value = self.coerce(_walk(tree, path))
            if value is not None:
                return value
        return None


_INFO = ("result", "value", "data", "parsed", "info")

UI_AMOUNT = ExtractionRule("ui_amount", (_INFO + ("tokenAmount", "uiAmount"),), _as_float)
MINT = ExtractionRule("mint", (_INFO + ("mint",),), _as_str)
OWNER = ExtractionRule("owner", (("result", "value", "owner"),), _as_str)
SLOT = ExtractionRule("slot", (("context", "slot"), ("result", "context", "slot")), _as_slot)

RULES: Dict[str, ExtractionRule] = {rule.name: rule for rule in (UI_AMOUNT, MINT, OWNER, SLOT)}


class Observation(BaseModel):
    value: float
    owner: str
    mint: str
    slot: Optional[int] = Field(default=None, ge=0)

    model_config = ConfigDict(frozen=True)


class Row(BaseModel):
    timestamp: int
    slot: Optional[int] = None
    account: str
    mint: str
    owner: str
    value: float
    delta: float
    rolling_delta: float

    model_config = ConfigDict(frozen=True)

    def as_record(self) -> Tuple[Any, ...]:
        """Return the row as a tuple ordered like ``ROW_COLUMNS``."""
        return (
            self.timestamp,
            "" if self.slot is None else self.slot,
            self.account,
            self.mint,
            self.owner,
            self.value,
            self.delta,
            self.rolling_delta,
        )


def _unwrap(payload: Dict[str, Any]) -> Any:
    # Servers wrap notifications as {"method": "accountNotification", "params": {...}}
    if payload.get("method") == "accountNotification":
        return payload.get("params")
    return payload


def decode_notification(payload: Any) -> Optional[Observation]:
    """Decode one raw notification, or return ``None`` if it carries no update."""
    if not isinstance(payload, dict):
        return None
    tree = _unwrap(payload)
    value = UI_AMOUNT.extract(tree)
    mint = MINT.extract(tree)
    owner = OWNER.extract(tree)
    if value is None or mint is None or owner is None:
        return None
    return Observation(value=value, owner=owner, mint=mint, slot=SLOT.extract(tree))


__all__ = [
    "ExtractionRule",
    "Observation",
    "ROW_COLUMNS",
    "RULES",
    "Row",
    "decode_notification",
]
