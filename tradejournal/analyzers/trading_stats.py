"""
Aggregate performance statistics over a collection of deals.

Everything here is a pure function of its arguments: no caching, no shared
state, no I/O. The only order-sensitive field is ``current_balance``, which is
read from the first deal, so callers pass deals most recent first (the order
DealExportParser and the record store both return).
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Iterable, Sequence

from tradejournal.parsers.deals import Deal, Direction

ALL_SYMBOLS = "All"


@dataclass(frozen=True)
class TradingStats:
    total_deals: int = 0
    total_net_pl: float = 0.0
    win_rate: float = 0.0  # percent, 0-100
    profit_factor: float = 0.0
    best_trade: float = 0.0
    worst_trade: float = 0.0
    average_win: float = 0.0
    average_loss: float = 0.0  # positive magnitude
    longs_won: int = 0
    shorts_won: int = 0
    total_longs: int = 0
    total_shorts: int = 0
    current_balance: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def calculate_stats(deals: Sequence[Deal]) -> TradingStats:
    """Reduce deals to a TradingStats. Empty input gives all zeros.

    A win is strictly ``net_pl > 0``; break-even deals count as losses.
    With no losing P&L the profit factor is the gross profit itself.
    """
    total = len(deals)
    if total == 0:
        return TradingStats()

    total_net_pl = 0.0
    wins = 0
    gross_profit = 0.0
    gross_loss = 0.0
    best = float("-inf")
    worst = float("inf")
    longs_won = shorts_won = 0
    total_longs = total_shorts = 0

    for deal in deals:
        total_net_pl += deal.net_pl
        best = max(best, deal.net_pl)
        worst = min(worst, deal.net_pl)

        is_long = deal.direction == Direction.LONG
        if is_long:
            total_longs += 1
        else:
            total_shorts += 1

        if deal.net_pl > 0:
            wins += 1
            gross_profit += deal.net_pl
            if is_long:
                longs_won += 1
            else:
                shorts_won += 1
        else:
            gross_loss += abs(deal.net_pl)

    losses = total - wins
    return TradingStats(
        total_deals=total,
        total_net_pl=total_net_pl,
        win_rate=wins / total * 100,
        profit_factor=gross_profit if gross_loss == 0 else gross_profit / gross_loss,
        best_trade=best,
        worst_trade=worst,
        average_win=gross_profit / wins if wins else 0.0,
        average_loss=gross_loss / losses if losses else 0.0,
        longs_won=longs_won,
        shorts_won=shorts_won,
        total_longs=total_longs,
        total_shorts=total_shorts,
        current_balance=deals[0].balance or 0.0,
    )


def filter_by_symbol(deals: Iterable[Deal], symbol: str | None) -> list[Deal]:
    """Keep deals for one symbol, preserving order. "All" or blank keeps everything."""
    if not symbol or symbol == ALL_SYMBOLS:
        return list(deals)
    return [d for d in deals if d.symbol == symbol]


def unique_symbols(deals: Iterable[Deal]) -> list[str]:
    return sorted({d.symbol for d in deals})
