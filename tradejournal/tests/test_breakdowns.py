"""Tests for chart datasets."""

from __future__ import annotations

from datetime import datetime

import pytest

from tradejournal.analyzers.breakdowns import (
    daily_summary,
    equity_curve,
    hourly_heatmap,
    symbol_performance,
    volume_scatter,
)
from tradejournal.parsers.deals import BROKER_TZ


def _at(day: int, hour: int = 14, minute: int = 30) -> datetime:
    return datetime(2024, 10, day, hour, minute, tzinfo=BROKER_TZ)


class TestEquityCurve:
    def test_oldest_first_and_cumulative(self, make_deal):
        deals = [
            make_deal(50, time=_at(27)),
            make_deal(-20, time=_at(26)),
            make_deal(100, time=_at(25)),
        ]
        curve = equity_curve(deals)
        assert [p["balance"] for p in curve] == [100.0, 80.0, 130.0]
        assert [p["net_pl"] for p in curve] == [100, -20, 50]
        assert curve[0]["date"] == "25/10"
        assert curve[-1]["full_date"] == _at(27).isoformat()

    def test_empty(self):
        assert equity_curve([]) == []


class TestSymbolPerformance:
    def test_best_first(self, make_deal):
        deals = [
            make_deal(-30, symbol="EURUSD"),
            make_deal(100, symbol="XAUUSD"),
            make_deal(20, symbol="BTCUSD"),
            make_deal(-10, symbol="XAUUSD"),
        ]
        assert symbol_performance(deals) == [
            {"symbol": "XAUUSD", "pl": 90.0},
            {"symbol": "BTCUSD", "pl": 20.0},
            {"symbol": "EURUSD", "pl": -30.0},
        ]

    def test_empty(self):
        assert symbol_performance([]) == []


class TestHourlyHeatmap:
    def test_full_grid(self):
        cells = hourly_heatmap([])
        assert len(cells) == 7 * 24
        assert all(c["count"] == 0 and c["win_rate"] == 0.0 for c in cells)
        assert cells[0] == {"day": 0, "hour": 0, "win_rate": 0.0, "count": 0}
        assert cells[-1]["day"] == 6 and cells[-1]["hour"] == 23

    def test_sunday_is_day_zero(self, make_deal):
        # 2024-10-27 is a Sunday
        deals = [
            make_deal(10, time=_at(27, 14, 5)),
            make_deal(-10, time=_at(27, 14, 45)),
            make_deal(5, time=_at(28, 9)),
        ]
        cells = {(c["day"], c["hour"]): c for c in hourly_heatmap(deals)}
        assert cells[(0, 14)]["count"] == 2
        assert cells[(0, 14)]["win_rate"] == pytest.approx(50.0)
        assert cells[(1, 9)]["win_rate"] == pytest.approx(100.0)
        assert sum(c["count"] for c in cells.values()) == 3


class TestDailySummary:
    def test_every_day_of_month(self):
        summary = daily_summary([], 2024, 2)
        assert len(summary) == 29
        assert summary[0] == {"date": "2024-02-01", "net_pl": 0.0, "count": 0}

    def test_totals_per_day(self, make_deal):
        deals = [
            make_deal(40, time=_at(27, 10)),
            make_deal(-15, time=_at(27, 16)),
            make_deal(8, time=_at(3)),
            make_deal(999, time=datetime(2024, 9, 30, 12, tzinfo=BROKER_TZ)),
        ]
        by_date = {d["date"]: d for d in daily_summary(deals, 2024, 10)}
        assert len(by_date) == 31
        assert by_date["2024-10-27"] == {"date": "2024-10-27", "net_pl": 25.0, "count": 2}
        assert by_date["2024-10-03"]["count"] == 1
        assert "2024-09-30" not in by_date


def test_volume_scatter(make_deal):
    points = volume_scatter([make_deal(12.0, symbol="EURUSD", volume=0.5), make_deal(0.0)])
    assert points == [
        {"volume": 0.5, "pl": 12.0, "is_win": True, "name": "EURUSD"},
        {"volume": 1.0, "pl": 0.0, "is_win": False, "name": "XAUUSD"},
    ]
