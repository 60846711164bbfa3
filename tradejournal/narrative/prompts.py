"""Prompt templates for the trading coach."""

from __future__ import annotations

from typing import Sequence

from tradejournal.analyzers.trading_stats import TradingStats
from tradejournal.parsers.deals import Deal

COACH_SYSTEM_PROMPT = (
    "You are Jarvis, a concise and professional trading coach. "
    "Answer with sharp, data-driven observations. Reference the trader's own "
    "numbers. No generic advice, no disclaimers."
)

RISK_SYSTEM_PROMPT = (
    "You are Jarvis, an AI risk officer. Your job is to protect the trader's "
    "capital through data. Be composed, precise and objective."
)

RECENT_DEALS_IN_CONTEXT = 5


def _money(value: float) -> str:
    return f"${value:,.2f}"


def stats_context(stats: TradingStats) -> str:
    return (
        f"Total deals: {stats.total_deals}, "
        f"Net P/L: {_money(stats.total_net_pl)}, "
        f"Win rate: {stats.win_rate:.2f}%, "
        f"Profit factor: {stats.profit_factor:.2f}"
    )


def build_insights_prompt(question: str, stats: TradingStats, recent_deals: Sequence[Deal]) -> str:
    recent = ", ".join(
        f"{d.symbol} ({d.direction.value}) {_money(d.net_pl)}"
        for d in recent_deals[:RECENT_DEALS_IN_CONTEXT]
    )
    return (
        "Trader data:\n"
        f"{stats_context(stats)}\n"
        f"Most recent {RECENT_DEALS_IN_CONTEXT} deals: {recent or 'none'}\n\n"
        f"Trader question: {question}"
    )


def build_trade_review_prompt(deal: Deal, has_image: bool) -> str:
    tasks = []
    if has_image:
        tasks.append(
            "[Chart review] Study the attached chart. Identify support/resistance, "
            "trend lines or patterns, and judge whether the entry fits the technical picture."
        )
    tasks.extend([
        "[Reasoning] Is the trader's stated reason for the entry sound?",
        "[Improvement] What should be done differently next time?",
        "[Score] Rate this trade from 0 to 10.",
    ])
    numbered = "\n".join(f"{i}. {task}" for i, task in enumerate(tasks, start=1))

    return (
        "Review this trade as a professional trading coach.\n\n"
        "Trade data:\n"
        f"- Symbol: {deal.symbol}\n"
        f"- Direction: {deal.direction.value}\n"
        f"- Entry price: {deal.entry_price}\n"
        f"- Closing price: {deal.closing_price}\n"
        f"- Net P/L: {_money(deal.net_pl)}\n"
        f"- Trader's entry reason: \"{deal.entry_reason or 'not provided'}\"\n\n"
        "Your tasks:\n"
        f"{numbered}\n\n"
        "Keep it concise and professional."
    )


def build_risk_prompt(stats: TradingStats) -> str:
    return (
        "Run a full performance scan and give a risk and discipline diagnosis:\n"
        f"- Total deals: {stats.total_deals}\n"
        f"- Total net P/L: {_money(stats.total_net_pl)}\n"
        f"- Win rate: {stats.win_rate:.2f}%\n"
        f"- Profit factor: {stats.profit_factor:.2f}\n"
        f"- Average win: {_money(stats.average_win)}\n"
        f"- Average loss: {_money(stats.average_loss)}\n"
        f"- Largest single loss: {_money(stats.worst_trade)}\n\n"
        "Focus on whether the risk:reward ratio is reasonable. If the average "
        "loss exceeds the average win, warn the trader firmly. "
        "Stay under 150 words."
    )


def build_correlation_prompt(assets: Sequence[str]) -> str:
    return (
        "Check whether the following assets are highly positively correlated, "
        "which would concentrate risk:\n"
        f"Assets: {', '.join(assets)}\n\n"
        "Flag highly correlated combinations (e.g. gold and silver, Nasdaq and "
        "Bitcoin, EUR and GBP).\n\n"
        "Respond in JSON only, no other text:\n"
        '{"has_risk": true, "correlated_pairs": ["Asset A & Asset B"], '
        '"explanation": "short explanation of the risk"}'
    )
