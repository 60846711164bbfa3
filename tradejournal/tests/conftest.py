"""Shared fixtures: a small broker export and a deal factory."""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from tradejournal.parsers.deals import BROKER_TZ, Deal, Direction, deal_id

HEADER = (
    "Symbol,Opening Direction,Closing Time (UTC+8),Entry price,Closing Price,"
    "Closing Quantity,Net USD,Balance USD"
)

ROWS = [
    'XAUUSD,Buy,2024/10/27 14:30:00,2000.50,2010.00,1.00 Lots,950.00,"10,950.00 "',
    'EURUSD,Sell,2024/10/25 09:15:00,1.0850,1.0900,2.50 Lots,-125.00,"10,000.00"',
    'BTCUSD,Buy,2024/10/26 22:00:05,67000,67500,0.10 Lots,50.00,"10,050.00"',
]

PREAMBLE = [
    "Account,12345678",
    "Period,2024-10-01 - 2024-10-31",
    "Generated,2024-11-01 09:00:00",
]


@pytest.fixture
def export_text() -> str:
    return "\n".join([HEADER, *ROWS])


@pytest.fixture
def export_with_preamble() -> str:
    return "\n".join([*PREAMBLE, HEADER, *ROWS])


@pytest.fixture
def make_deal():
    """Build deals with sensible defaults; each call is one minute older than the last."""
    base = datetime(2024, 10, 27, 14, 30, tzinfo=BROKER_TZ)
    counter = {"n": 0}

    def _make(
        net_pl: float,
        direction: Direction = Direction.LONG,
        symbol: str = "XAUUSD",
        balance: float = 0.0,
        time: datetime | None = None,
        volume: float = 1.0,
    ) -> Deal:
        if time is None:
            time = base - timedelta(minutes=counter["n"])
            counter["n"] += 1
        return Deal(
            id=deal_id(time, symbol, 100.0, volume),
            symbol=symbol,
            direction=direction,
            time=time,
            entry_price=100.0,
            closing_price=101.0,
            volume=volume,
            net_pl=net_pl,
            balance=balance,
        )

    return _make
