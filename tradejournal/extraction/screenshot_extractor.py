"""Extract a single deal from a trading screenshot using Claude Vision."""

from __future__ import annotations

import json
import logging
import math
from datetime import datetime, timezone
from typing import Any, Optional, Union

from pydantic import BaseModel, ValidationError, field_validator

from tradejournal.narrative.claude import (
    ANALYSIS_MODEL,
    call_claude,
    get_api_key,
    image_block,
    strip_code_fences,
    with_retry,
)
from tradejournal.parsers.deals import Deal, Direction, deal_id, parse_direction

logger = logging.getLogger(__name__)

UNKNOWN_SYMBOL = "UNKNOWN"

EXTRACTION_PROMPT = """\
You are an OCR data-extraction specialist. Analyze this trading screenshot
(usually from TradingView, MT4/MT5 or a crypto exchange).

Extract the fields below. If something is missing, infer it from context where
you reasonably can (e.g. red P/L while price rose suggests a short).

Fields:
- symbol: instrument name (e.g. XAUUSD, BTCUSD, EURUSD)
- direction: "Buy" or "Sell"
- entry_price: number
- closing_price: number (exit price or current price)
- volume: number (lots or amount)
- net_pl: number (profit/loss in account currency)
- time: ISO-8601 closing time (use the current year if not shown, assume UTC if unknown)

Return ONLY valid JSON in this exact format, no markdown:
{
    "symbol": "XAUUSD",
    "direction": "Buy",
    "entry_price": 2000.50,
    "closing_price": 2010.00,
    "volume": 1.0,
    "net_pl": 950.00,
    "time": "2024-10-27T14:30:00Z"
}
"""


class ScannedDeal(BaseModel):
    """The model's JSON reply. Every field is optional; gaps get explicit defaults."""

    symbol: Optional[str] = None
    direction: Optional[str] = None
    entry_price: Optional[float] = None
    closing_price: Optional[float] = None
    volume: Optional[float] = None
    net_pl: Optional[float] = None
    time: Optional[str] = None

    @field_validator("symbol", "direction", "time", mode="before")
    @classmethod
    def _blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("entry_price", "closing_price", "volume", "net_pl", mode="before")
    @classmethod
    def _loose_number(cls, v: Any) -> Any:
        # "$1,234.50" -> 1234.5; anything unreadable becomes a gap
        if v is None or isinstance(v, bool):
            return None
        try:
            num = float(str(v).replace(",", "").replace("$", "").strip())
        except ValueError:
            return None
        return num if math.isfinite(num) else None


def _parse_scan_time(raw: Optional[str], now: datetime) -> datetime:
    if not raw:
        return now
    try:
        dt = datetime.fromisoformat(raw.strip().replace("Z", "+00:00"))
    except ValueError:
        logger.debug("Unreadable scanned time %r, using now", raw)
        return now
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def scanned_to_deal(scan: ScannedDeal, now: Optional[datetime] = None) -> Deal:
    """Turn a validated scan into a Deal, filling gaps with explicit defaults."""
    now = now or datetime.now(timezone.utc)
    symbol = (scan.symbol or UNKNOWN_SYMBOL).strip().upper()
    net_pl = scan.net_pl or 0.0

    try:
        direction = parse_direction(scan.direction or "")
    except ValueError:
        direction = Direction.LONG if net_pl > 0 else Direction.SHORT

    time = _parse_scan_time(scan.time, now)
    entry_price = scan.entry_price or 0.0
    volume = scan.volume or 0.0

    return Deal(
        id=deal_id(time, symbol, entry_price, volume),
        symbol=symbol,
        direction=direction,
        time=time,
        entry_price=entry_price,
        closing_price=scan.closing_price or 0.0,
        volume=volume,
        net_pl=net_pl,
        balance=0.0,
        exit_efficiency=0.0,
    )


def parse_scan_response(text: str, now: Optional[datetime] = None) -> Optional[Deal]:
    """Validate the Vision reply; None when it is not a JSON object we can use."""
    cleaned = strip_code_fences(text or "")
    try:
        payload = json.loads(cleaned)
        scan = ScannedDeal.model_validate(payload)
    except (json.JSONDecodeError, ValidationError):
        logger.warning("Failed to parse Vision response: %s", cleaned[:200])
        return None
    return scanned_to_deal(scan, now)


def parse_trade_from_image(
    image: Union[bytes, str],
    media_type: str = "image/png",
    api_key: str | None = None,
) -> Optional[Deal]:
    """Extract one deal from a screenshot (raw bytes or a base64 data URL).

    Returns None when the API is unavailable or the reply is unusable.
    """
    key = get_api_key(api_key)
    if not key:
        logger.warning("No ANTHROPIC_API_KEY set; cannot scan screenshot")
        return None

    content = [
        image_block(image, default_media_type=media_type),
        {"type": "text", "text": EXTRACTION_PROMPT},
    ]
    try:
        text = with_retry(
            lambda: call_claude(key, content, model=ANALYSIS_MODEL, max_tokens=1024),
            "Screenshot scan",
        )
    except Exception:
        logger.exception("Screenshot scan failed after retry")
        return None

    deal = parse_scan_response(text)
    if deal is not None:
        logger.info("Scanned deal %s (%s, %.2f)", deal.symbol, deal.direction.value, deal.net_pl)
    return deal
