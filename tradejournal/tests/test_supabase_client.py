"""Tests for the Supabase record store, with the client mocked."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest

from tradejournal.analyzers.breakdowns import daily_summary, equity_curve, hourly_heatmap
from tradejournal.parsers.deals import BROKER_TZ, DealAnnotation, Direction, TradingPlan
from tradejournal.storage import supabase_client as store

ROW = {
    "id": "1730010600000-XAUUSD-2000.5-1",
    "user_id": "u1",
    "symbol": "XAUUSD",
    "direction": "Buy",
    "time": "2024-10-27T06:30:00+00:00",
    "entry_price": 2000.5,
    "closing_price": 2010.0,
    "volume": 1.0,
    "net_pl": 100.0,
    "balance": 10100.0,
    "mae": -20.0,
    "mfe": 120.0,
    "entry_reason": "Breakout",
    "image_url": None,
    "ai_analysis": None,
}


@pytest.fixture
def client():
    mock = MagicMock()
    with patch.object(store, "_get_client", return_value=mock):
        yield mock


@pytest.fixture
def no_client():
    with patch.object(store, "_get_client", return_value=None):
        yield


class TestUnconfigured:
    def test_missing_env(self, monkeypatch):
        monkeypatch.delenv("SUPABASE_URL", raising=False)
        monkeypatch.delenv("SUPABASE_SERVICE_KEY", raising=False)
        store.reset_client()
        try:
            assert store.is_configured() is False
        finally:
            store.reset_client()

    def test_operations_degrade(self, no_client, make_deal):
        assert store.fetch_deals("u1") == []
        assert store.fetch_deal("u1", "x") is None
        assert store.insert_deals("u1", [make_deal(5)]) == 0
        assert store.update_annotation("u1", "x", DealAnnotation(entry_reason="r")) is False
        assert store.fetch_plans("u1") == []
        assert store.insert_plan("u1", TradingPlan(asset="XAUUSD", scenario="s")) is None
        assert store.delete_plan("u1", "p1") is False
        assert store.active_plan_assets("u1") == []


class TestDeals:
    def test_fetch_maps_rows(self, client):
        query = client.table.return_value.select.return_value.eq.return_value.order.return_value
        query.execute.return_value.data = [ROW]

        deals = store.fetch_deals("u1")

        client.table.assert_called_with("deals")
        client.table.return_value.select.return_value.eq.assert_called_with("user_id", "u1")
        client.table.return_value.select.return_value.eq.return_value.order.assert_called_with(
            "time", desc=True
        )
        assert len(deals) == 1
        deal = deals[0]
        assert deal.id == ROW["id"]
        assert deal.direction == Direction.LONG
        assert deal.time == datetime(2024, 10, 27, 6, 30, tzinfo=timezone.utc)
        assert deal.entry_reason == "Breakout"
        assert deal.exit_efficiency == pytest.approx(100 / 120 * 100)

    def test_fetch_drops_bad_rows(self, client):
        query = client.table.return_value.select.return_value.eq.return_value.order.return_value
        query.execute.return_value.data = [ROW, {**ROW, "direction": "Sideways"}]
        assert len(store.fetch_deals("u1")) == 1

    def test_fetch_error(self, client):
        client.table.side_effect = RuntimeError("connection reset")
        assert store.fetch_deals("u1") == []

    def test_insert_skips_duplicates(self, client, make_deal):
        deals = [make_deal(10), make_deal(-5)]
        assert store.insert_deals("u1", deals) == 2

        args, kwargs = client.table.return_value.upsert.call_args
        assert kwargs == {"on_conflict": "user_id,id", "ignore_duplicates": True}
        rows = args[0]
        assert [r["id"] for r in rows] == [d.id for d in deals]
        assert all(r["user_id"] == "u1" for r in rows)
        assert "entry_reason" not in rows[0]

    def test_insert_nothing(self, client):
        assert store.insert_deals("u1", []) == 0
        client.table.assert_not_called()

    def test_insert_error(self, client, make_deal):
        client.table.return_value.upsert.return_value.execute.side_effect = RuntimeError("boom")
        assert store.insert_deals("u1", [make_deal(1)]) == 0

    def test_update_annotation_writes_only_set_fields(self, client):
        ok = store.update_annotation("u1", "d1", DealAnnotation(entry_reason="Retest"))
        assert ok is True
        client.table.return_value.update.assert_called_once_with({"entry_reason": "Retest"})
        update = client.table.return_value.update.return_value
        update.eq.assert_called_with("user_id", "u1")
        update.eq.return_value.eq.assert_called_with("id", "d1")

    def test_empty_annotation_is_noop(self, client):
        assert store.update_annotation("u1", "d1", DealAnnotation()) is True
        client.table.assert_not_called()


class TestFetchDeal:
    def _query(self, client):
        return (
            client.table.return_value.select.return_value.eq.return_value.eq.return_value.limit.return_value
        )

    def test_filters_by_id(self, client):
        self._query(client).execute.return_value.data = [ROW]
        deal = store.fetch_deal("u1", ROW["id"])
        assert deal.id == ROW["id"]
        select = client.table.return_value.select.return_value
        select.eq.assert_called_with("user_id", "u1")
        select.eq.return_value.eq.assert_called_with("id", ROW["id"])
        client.table.return_value.select.return_value.eq.return_value.eq.return_value.limit.assert_called_with(1)

    def test_missing(self, client):
        self._query(client).execute.return_value.data = []
        assert store.fetch_deal("u1", "nope") is None

    def test_error(self, client):
        client.table.side_effect = RuntimeError("connection reset")
        assert store.fetch_deal("u1", "d1") is None


class TestRoundTrip:
    def _stored(self, deal):
        # Postgres returns timestamptz in UTC
        row = store._deal_to_row("u1", deal)
        row["time"] = deal.time.astimezone(timezone.utc).isoformat()
        return row

    def test_time_comes_back_on_broker_clock(self, make_deal):
        deal = make_deal(10, time=datetime(2024, 10, 27, 3, 30, tzinfo=BROKER_TZ))
        fetched = store._row_to_deal(self._stored(deal))

        assert fetched == deal
        assert fetched.time.utcoffset() == timedelta(hours=8)
        assert fetched.time.hour == 3

        cells = {(c["day"], c["hour"]): c["count"] for c in hourly_heatmap([fetched])}
        assert cells[(0, 3)] == 1
        by_date = {d["date"]: d["count"] for d in daily_summary([fetched], 2024, 10)}
        assert by_date["2024-10-27"] == 1
        assert equity_curve([fetched])[0]["date"] == "27/10"

    def test_estimated_flag_survives(self, make_deal):
        deal = replace(make_deal(100), mae=-20.0, mfe=120.0, excursions_estimated=True)
        row = self._stored(deal)
        assert row["excursions_estimated"] is True
        assert store._row_to_deal(row).excursions_estimated is True

    def test_rows_without_flag_read_as_measured(self):
        assert store._row_to_deal(ROW).excursions_estimated is False


class TestPlans:
    def _plans_query(self, client):
        return client.table.return_value.select.return_value.eq.return_value.order.return_value

    def test_fetch_plans(self, client):
        self._plans_query(client).execute.return_value.data = [
            {
                "id": "p1",
                "timeframe": "month",
                "asset": "XAUUSD",
                "scenario": "Buy the dip",
                "image_url": None,
                "created_at": "2024-10-01T00:00:00Z",
            }
        ]
        plans = store.fetch_plans("u1")
        client.table.assert_called_with("plans")
        assert plans[0].id == "p1"
        assert plans[0].timeframe == "month"
        assert plans[0].created_at == datetime(2024, 10, 1, tzinfo=timezone.utc)

    def test_insert_plan_returns_stored_row(self, client):
        client.table.return_value.insert.return_value.execute.return_value.data = [
            {"id": "p9", "timeframe": "week", "asset": "EURUSD", "scenario": "Range"}
        ]
        plan = store.insert_plan("u1", TradingPlan(asset="EURUSD", scenario="Range"))
        assert plan.id == "p9"
        row = client.table.return_value.insert.call_args.args[0]
        assert row["user_id"] == "u1"
        assert row["timeframe"] == "week"

    def test_active_plan_assets_distinct(self, client):
        self._plans_query(client).execute.return_value.data = [
            {"id": "1", "asset": "XAUUSD"},
            {"id": "2", "asset": "EURUSD"},
            {"id": "3", "asset": "XAUUSD"},
            {"id": "4", "asset": ""},
        ]
        assert store.active_plan_assets("u1") == ["XAUUSD", "EURUSD"]

    def test_delete_plan(self, client):
        assert store.delete_plan("u1", "p1") is True
        client.table.return_value.delete.return_value.eq.assert_called_with("user_id", "u1")
