"""Build a Deal from the manual-entry form."""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from .deal_export import parse_closing_time
from .deals import BROKER_TZ, Deal, Direction, deal_id, parse_direction


class ManualEntryError(ValueError):
    """The form is missing a required field or holds an unusable value."""


_REQUIRED_FIELDS = ("symbol", "entry_price", "closing_price", "net_pl")


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _to_float(value: Any, name: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ManualEntryError(f"{name} must be a number, got {value!r}") from None
    if not math.isfinite(number):
        raise ManualEntryError(f"{name} must be a finite number, got {value!r}")
    return number


def build_manual_deal(form: Mapping[str, Any], now: Optional[datetime] = None) -> Deal:
    """Validate a manual-entry form and return the Deal it describes.

    Expected keys: symbol, direction ("Buy"/"Sell"), entry_price,
    closing_price, volume (optional, default 0), net_pl, time (ISO
    "YYYY-MM-DDTHH:MM"; naive times are UTC+8; missing means now).
    """
    missing = [name for name in _REQUIRED_FIELDS if _is_blank(form.get(name))]
    if missing:
        raise ManualEntryError(f"Missing required fields: {', '.join(missing)}")

    symbol = str(form["symbol"]).strip().upper()

    raw_direction = form.get("direction")
    try:
        direction = Direction.LONG if _is_blank(raw_direction) else parse_direction(str(raw_direction))
    except ValueError as e:
        raise ManualEntryError(str(e)) from None

    raw_time = form.get("time")
    if _is_blank(raw_time):
        time = now or datetime.now(timezone.utc)
    elif isinstance(raw_time, datetime):
        time = raw_time if raw_time.tzinfo else raw_time.replace(tzinfo=BROKER_TZ)
    else:
        time = parse_closing_time(str(raw_time))
        if time is None:
            raise ManualEntryError(f"Unreadable time: {raw_time!r}")

    entry_price = _to_float(form["entry_price"], "entry_price")
    closing_price = _to_float(form["closing_price"], "closing_price")
    volume = 0.0 if _is_blank(form.get("volume")) else _to_float(form["volume"], "volume")
    net_pl = _to_float(form["net_pl"], "net_pl")

    return Deal(
        id=deal_id(time, symbol, entry_price, volume),
        symbol=symbol,
        direction=direction,
        time=time,
        entry_price=entry_price,
        closing_price=closing_price,
        volume=volume,
        net_pl=net_pl,
        balance=0.0,
        exit_efficiency=0.0,
    )
