"""
Broker deal-history export parser.

Statement exports have quirks:
- A few metadata lines (account, period, generated-at) may precede the real header
- The real header row carries both "Symbol" and "Opening Direction"
- Column order differs between export versions, so columns are found by name
- "Closing Quantity" carries a " Lots" suffix: 2.50 Lots
- "Balance USD" uses thousands separators and stray spaces: "10,234.56 "
- Older exports have no MAE/MFE columns at all

Parsing is best-effort: a bad row is skipped and recorded, never raised.
"""

from __future__ import annotations

import csv
import logging
import math
import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from .deals import (
    BROKER_TZ,
    Deal,
    deal_id,
    estimate_mae,
    estimate_mfe,
    exit_efficiency,
    parse_direction,
)

logger = logging.getLogger(__name__)

SYMBOL_MARKER = "Symbol"
DIRECTION_MARKER = "Opening Direction"

# Fewer cells than this cannot hold a deal.
MIN_COLUMNS = 8

_REQUIRED_COLUMNS: dict[str, str] = {
    "symbol": SYMBOL_MARKER,
    "direction": DIRECTION_MARKER,
    "time": "Closing Time (UTC+8)",
    "entry": "Entry price",
    "closing": "Closing Price",
    "volume": "Closing Quantity",
    "net_pl": "Net USD",
    "balance": "Balance USD",
}

_OPTIONAL_COLUMNS: dict[str, str] = {
    "mae": "MAE USD",
    "mfe": "MFE USD",
}

_LOTS_SUFFIX_RE = re.compile(r"\s*lots?\s*$", re.IGNORECASE)
_BALANCE_JUNK_RE = re.compile(r"[\s,]")

_TIME_FORMATS = [
    "%Y/%m/%d %H:%M:%S",
    "%Y/%m/%d %H:%M",
    "%Y.%m.%d %H:%M:%S",
    "%Y.%m.%d %H:%M",
    "%d/%m/%Y %H:%M:%S",
    "%d/%m/%Y %H:%M",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %H:%M",
    "%d/%m/%Y %H:%M:%S.%f",
    "%Y/%m/%d %H:%M:%S.%f",
]


# ---------------------------------------------------------------------------
# Row results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SkippedRow:
    """A data line that did not produce a deal."""

    line_number: int  # 1-based, counted in the trimmed input
    reason: str


@dataclass(frozen=True)
class RowResult:
    """Outcome of a single data line: exactly one of deal / skipped is set."""

    deal: Optional[Deal] = None
    skipped: Optional[SkippedRow] = None

    @property
    def ok(self) -> bool:
        return self.deal is not None


class RowError(ValueError):
    """Raised inside row construction; always caught by the parser."""


# ---------------------------------------------------------------------------
# Field parsing
# ---------------------------------------------------------------------------


def _finite(value: float, what: str) -> float:
    if not math.isfinite(value):
        raise RowError(f"{what} is not a finite number")
    return value


def parse_number(value: str, what: str = "value") -> float:
    """Parse a plain decimal cell."""
    text = (value or "").strip()
    if not text:
        raise RowError(f"{what} is empty")
    try:
        return _finite(float(text), what)
    except ValueError:
        raise RowError(f"{what} is not a number: {value!r}") from None


def parse_volume(value: str) -> float:
    """'2.50 Lots' -> 2.5"""
    return parse_number(_LOTS_SUFFIX_RE.sub("", value or ""), "volume")


def parse_balance(value: str) -> float:
    """'10,234.56 ' -> 10234.56"""
    return parse_number(_BALANCE_JUNK_RE.sub("", value or ""), "balance")


def parse_optional_number(value: Optional[str]) -> Optional[float]:
    """Parse an optional cell; blank or garbage gives None."""
    if value is None:
        return None
    try:
        return parse_number(value)
    except RowError:
        return None


def parse_closing_time(value: str) -> Optional[datetime]:
    """Parse a closing time. Naive values are taken as UTC+8, the column's zone."""
    text = (value or "").strip()
    if not text:
        return None

    dt: Optional[datetime] = None
    try:
        dt = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        for fmt in _TIME_FORMATS:
            try:
                dt = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue

    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=BROKER_TZ)
    return dt


# ---------------------------------------------------------------------------
# Header detection
# ---------------------------------------------------------------------------


def _split_line(line: str) -> list[str]:
    return next(csv.reader([line]), [])


def _is_header_row(cells: list[str]) -> bool:
    stripped = {c.strip() for c in cells}
    return SYMBOL_MARKER in stripped and DIRECTION_MARKER in stripped


def _build_column_map(headers: list[str]) -> dict[str, Optional[int]]:
    """Map logical column names to their indices; None when a column is absent."""
    stripped = [h.strip() for h in headers]
    col_map: dict[str, Optional[int]] = {}
    for key, name in {**_REQUIRED_COLUMNS, **_OPTIONAL_COLUMNS}.items():
        col_map[key] = stripped.index(name) if name in stripped else None
    return col_map


# ---------------------------------------------------------------------------
# Main parser
# ---------------------------------------------------------------------------


class DealExportParser:
    """
    Parse a broker deal-history export into Deals, most recent first.

    Usage:
        parser = DealExportParser()
        deals = parser.parse_string(text)
        print(parser.skipped_rows, parser.skipped[:3])
    """

    def __init__(self) -> None:
        self.deals: list[Deal] = []
        self.skipped: list[SkippedRow] = []
        self.header_line: Optional[int] = None
        self.total_rows: int = 0

    @property
    def skipped_rows(self) -> int:
        return len(self.skipped)

    def parse_csv(self, path: Union[str, Path]) -> list[Deal]:
        """Parse an export file (UTF-8, BOM tolerated)."""
        content = Path(path).read_text(encoding="utf-8-sig", errors="replace")
        return self.parse_string(content)

    def parse_string(self, content: str) -> list[Deal]:
        """Parse export text. Never raises; unusable input gives []."""
        self.deals = []
        self.skipped = []
        self.header_line = None
        self.total_rows = 0

        try:
            results = list(self._iter_rows(content or ""))
        except Exception:
            logger.exception("Deal export could not be read")
            return []

        for result in results:
            if result.ok:
                self.deals.append(result.deal)
            else:
                self.skipped.append(result.skipped)
                logger.debug(
                    "Skipping line %d: %s",
                    result.skipped.line_number,
                    result.skipped.reason,
                )

        self.deals.sort(key=lambda d: d.time, reverse=True)
        if self.header_line is not None:
            logger.info(
                "Parsed %d deals, skipped %d rows", len(self.deals), self.skipped_rows
            )
        return self.deals

    def _iter_rows(self, content: str):
        lines = content.strip().splitlines()

        header_idx: Optional[int] = None
        headers: list[str] = []
        for i, line in enumerate(lines):
            cells = _split_line(line)
            if _is_header_row(cells):
                header_idx = i
                headers = cells
                break

        if header_idx is None:
            logger.info("No deal header row found; nothing to import")
            return

        self.header_line = header_idx + 1
        col_map = _build_column_map(headers)
        missing = [
            _REQUIRED_COLUMNS[key] for key in _REQUIRED_COLUMNS if col_map[key] is None
        ]
        if missing:
            logger.warning("Deal export is missing columns: %s", ", ".join(missing))
            return

        for i in range(header_idx + 1, len(lines)):
            line = lines[i].strip()
            if not line:
                continue
            self.total_rows += 1
            yield self._parse_row(i + 1, line, col_map)

    def _parse_row(
        self,
        line_number: int,
        line: str,
        col_map: dict[str, Optional[int]],
    ) -> RowResult:
        cells = _split_line(line)
        if len(cells) < MIN_COLUMNS:
            return RowResult(skipped=SkippedRow(line_number, f"only {len(cells)} columns"))

        try:
            deal = self._build_deal(cells, col_map)
        except Exception as e:
            return RowResult(skipped=SkippedRow(line_number, str(e) or type(e).__name__))
        return RowResult(deal=deal)

    @staticmethod
    def _build_deal(cells: list[str], col_map: dict[str, Optional[int]]) -> Deal:
        def get(key: str) -> Optional[str]:
            idx = col_map.get(key)
            if idx is not None and idx < len(cells):
                return cells[idx]
            return None

        def require(key: str) -> str:
            value = get(key)
            if value is None:
                raise RowError(f"missing {_REQUIRED_COLUMNS[key]}")
            return value

        time = parse_closing_time(require("time"))
        if time is None:
            raise RowError(f"bad closing time: {get('time')!r}")

        symbol = require("symbol").strip()
        if not symbol:
            raise RowError("empty symbol")

        direction = parse_direction(require("direction"))
        entry_price = parse_number(require("entry"), "entry price")
        closing_price = parse_number(require("closing"), "closing price")
        volume = parse_volume(require("volume"))
        net_pl = parse_number(require("net_pl"), "net P/L")
        balance = parse_balance(require("balance"))

        mae = parse_optional_number(get("mae"))
        mfe = parse_optional_number(get("mfe"))
        estimated = mae is None or mfe is None
        if mae is None:
            mae = estimate_mae(net_pl)
        if mfe is None:
            mfe = estimate_mfe(net_pl)

        return Deal(
            id=deal_id(time, symbol, entry_price, volume),
            symbol=symbol,
            direction=direction,
            time=time,
            entry_price=entry_price,
            closing_price=closing_price,
            volume=volume,
            net_pl=net_pl,
            balance=balance,
            mae=mae,
            mfe=mfe,
            exit_efficiency=exit_efficiency(net_pl, mfe),
            excursions_estimated=estimated,
        )


def parse_deals(content: str) -> list[Deal]:
    """Parse export text into deals, most recent first."""
    return DealExportParser().parse_string(content)
