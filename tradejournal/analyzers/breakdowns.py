"""
Chart datasets derived from a list of deals.

Each function returns plain JSON-ready lists of dicts (no numpy scalars), so
results can go straight into an API response.
"""

from __future__ import annotations

import calendar
from datetime import date
from typing import Any, Sequence

import numpy as np
import pandas as pd

from tradejournal.parsers.deals import Deal

_COLUMNS = ["symbol", "day", "hour", "date", "net_pl", "volume", "win"]


def _frame(deals: Sequence[Deal]) -> pd.DataFrame:
    """One row per deal. Weekday follows Sunday=0 ... Saturday=6."""
    rows = [
        {
            "symbol": d.symbol,
            "day": (d.time.weekday() + 1) % 7,
            "hour": d.time.hour,
            "date": d.time.date(),
            "net_pl": float(d.net_pl),
            "volume": float(d.volume),
            "win": d.net_pl > 0,
        }
        for d in deals
    ]
    return pd.DataFrame(rows, columns=_COLUMNS)


def equity_curve(deals: Sequence[Deal]) -> list[dict[str, Any]]:
    """Cumulative net P&L, oldest deal first."""
    ordered = sorted(deals, key=lambda d: d.time)
    if not ordered:
        return []

    cumulative = pd.Series([d.net_pl for d in ordered], dtype="float64").cumsum()
    return [
        {
            "date": d.time.strftime("%d/%m"),
            "full_date": d.time.isoformat(),
            "balance": float(running),
            "net_pl": d.net_pl,
        }
        for d, running in zip(ordered, cumulative)
    ]


def symbol_performance(deals: Sequence[Deal]) -> list[dict[str, Any]]:
    """Net P&L per symbol, best first. Ties keep first-seen order."""
    df = _frame(deals)
    if df.empty:
        return []

    per_symbol = (
        df.groupby("symbol", sort=False)["net_pl"]
        .sum()
        .sort_values(ascending=False, kind="stable")
    )
    return [{"symbol": sym, "pl": float(pl)} for sym, pl in per_symbol.items()]


def hourly_heatmap(deals: Sequence[Deal]) -> list[dict[str, Any]]:
    """Win rate for every (weekday, hour) cell, 7 x 24 = 168 cells."""
    df = _frame(deals)
    grid = pd.MultiIndex.from_product([range(7), range(24)], names=["day", "hour"])

    if df.empty:
        total = wins = np.zeros(len(grid))
    else:
        counts = (
            df.groupby(["day", "hour"])["win"]
            .agg(["size", "sum"])
            .reindex(grid, fill_value=0)
        )
        total = counts["size"].to_numpy(dtype="float64")
        wins = counts["sum"].to_numpy(dtype="float64")
    win_rate = np.divide(wins, total, out=np.zeros_like(total), where=total > 0) * 100

    return [
        {"day": int(day), "hour": int(hour), "win_rate": float(rate), "count": int(n)}
        for (day, hour), rate, n in zip(grid, win_rate, total)
    ]


def daily_summary(deals: Sequence[Deal], year: int, month: int) -> list[dict[str, Any]]:
    """Net P&L and deal count for each calendar day of one month."""
    days_in_month = calendar.monthrange(year, month)[1]
    days = [date(year, month, day) for day in range(1, days_in_month + 1)]

    df = _frame(deals)
    totals: dict[date, tuple[float, int]] = {}
    if not df.empty:
        per_day = df.groupby("date")["net_pl"].agg(["sum", "size"])
        totals = {day: (float(row["sum"]), int(row["size"])) for day, row in per_day.iterrows()}

    summary = []
    for day in days:
        net_pl, count = totals.get(day, (0.0, 0))
        summary.append({"date": day.isoformat(), "net_pl": net_pl, "count": count})
    return summary


def volume_scatter(deals: Sequence[Deal]) -> list[dict[str, Any]]:
    return [
        {"volume": d.volume, "pl": d.net_pl, "is_win": d.net_pl > 0, "name": d.symbol}
        for d in deals
    ]
