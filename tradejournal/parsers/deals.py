"""
Deal records: the canonical unit of the trading journal.

A Deal is one closed position as reported by the broker (or entered by hand,
or scanned from a screenshot). Its identifier is derived from the deal's own
values so that importing the same export twice yields the same ids and the
record store can drop the duplicates.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

# Broker statements label their closing time column "(UTC+8)".
BROKER_TZ = timezone(timedelta(hours=8))

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class Direction(str, Enum):
    """Opening direction of a position."""

    LONG = "Buy"
    SHORT = "Sell"


_DIRECTION_ALIASES: dict[str, Direction] = {
    "buy": Direction.LONG,
    "long": Direction.LONG,
    "sell": Direction.SHORT,
    "short": Direction.SHORT,
}


def parse_direction(raw: str) -> Direction:
    """Map a broker/user direction string to a Direction.

    Raises ValueError for anything that is not a buy/long or sell/short.
    """
    key = (raw or "").strip().lower()
    if key not in _DIRECTION_ALIASES:
        raise ValueError(f"Unknown direction: {raw!r}")
    return _DIRECTION_ALIASES[key]


@dataclass(frozen=True)
class DealAnnotation:
    """User- or AI-supplied notes attached to a deal. Unset fields are left alone."""

    entry_reason: Optional[str] = None
    image_url: Optional[str] = None
    ai_analysis: Optional[str] = None

    def to_row(self) -> dict[str, str]:
        """Only the fields that were actually set, in store column names."""
        row = {}
        if self.entry_reason is not None:
            row["entry_reason"] = self.entry_reason
        if self.image_url is not None:
            row["image_url"] = self.image_url
        if self.ai_analysis is not None:
            row["ai_analysis"] = self.ai_analysis
        return row


@dataclass(frozen=True)
class Deal:
    """A single closed trade."""

    id: str
    symbol: str
    direction: Direction
    time: datetime  # closing time, timezone-aware
    entry_price: float
    closing_price: float
    volume: float  # lots
    net_pl: float
    balance: float  # account balance after the deal closed
    mae: Optional[float] = None  # maximum adverse excursion (USD)
    mfe: Optional[float] = None  # maximum favorable excursion (USD)
    exit_efficiency: float = 0.0  # percent of MFE actually realized
    excursions_estimated: bool = False

    # Annotation overlay
    entry_reason: Optional[str] = None
    image_url: Optional[str] = None
    ai_analysis: Optional[str] = None

    @property
    def is_win(self) -> bool:
        return self.net_pl > 0

    def with_annotation(self, annotation: DealAnnotation) -> "Deal":
        return replace(self, **annotation.to_row())

    def to_dict(self) -> dict:
        """JSON-friendly representation (API responses, prompts)."""
        return {
            "id": self.id,
            "symbol": self.symbol,
            "direction": self.direction.value,
            "time": self.time.isoformat(),
            "entry_price": self.entry_price,
            "closing_price": self.closing_price,
            "volume": self.volume,
            "net_pl": self.net_pl,
            "balance": self.balance,
            "mae": self.mae,
            "mfe": self.mfe,
            "exit_efficiency": self.exit_efficiency,
            "excursions_estimated": self.excursions_estimated,
            "entry_reason": self.entry_reason,
            "image_url": self.image_url,
            "ai_analysis": self.ai_analysis,
        }


@dataclass
class TradingPlan:
    """A weekly/monthly scenario for one asset."""

    asset: str
    scenario: str
    timeframe: str = "week"  # "week" | "month"
    image_url: Optional[str] = None
    id: Optional[str] = None
    created_at: Optional[datetime] = None


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------


def _fmt_number(value: float) -> str:
    """Shortest round-trip text for a number; integral values print without '.0'."""
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def epoch_ms(dt: datetime) -> int:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=BROKER_TZ)
    return (dt - _EPOCH) // timedelta(milliseconds=1)


def deal_id(time: datetime, symbol: str, entry_price: float, volume: float) -> str:
    """Deterministic deal identifier: '<epoch ms>-<symbol>-<entry>-<volume>'."""
    return "-".join([
        str(epoch_ms(time)),
        symbol,
        _fmt_number(entry_price),
        _fmt_number(volume),
    ])


# ---------------------------------------------------------------------------
# Excursions
# ---------------------------------------------------------------------------


def estimate_mae(net_pl: float) -> float:
    """Placeholder MAE when the statement has none. Heuristic, not a measurement."""
    if net_pl > 0:
        return -abs(net_pl * 0.2)
    return net_pl * 1.5


def estimate_mfe(net_pl: float) -> float:
    """Placeholder MFE when the statement has none. Heuristic, not a measurement."""
    if net_pl > 0:
        return net_pl * 1.2
    return abs(net_pl * 0.3)


def exit_efficiency(net_pl: float, mfe: Optional[float]) -> float:
    """Share of the favorable excursion that was realized, clamped to [0, 100]."""
    if mfe is None or not mfe > 0:
        return 0.0
    return max(0.0, min(100.0, net_pl / mfe * 100))
