"""
Trader grade: a 0-100 score and letter derived from TradingStats.

Three independently capped parts:
- Win rate (40 pts): saturates at ~66.7% win rate
- Profit factor (30 pts): saturates at PF 3.0
- Discipline (30 pts): average win / average loss, saturates at 2.0
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from typing import Any

from .trading_stats import TradingStats

WIN_RATE_MAX = 40.0
PROFIT_FACTOR_MAX = 30.0
DISCIPLINE_MAX = 30.0

# (minimum total, grade), highest first
_GRADE_THRESHOLDS: list[tuple[int, str]] = [
    (95, "S"),
    (85, "A"),
    (75, "B"),
    (60, "C"),
    (50, "D"),
]


@dataclass(frozen=True)
class TraderScore:
    total_score: int
    grade: str  # S | A | B | C | D | F
    win_rate_score: float
    profit_factor_score: float
    discipline_score: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def grade_for(total: int) -> str:
    for threshold, grade in _GRADE_THRESHOLDS:
        if total >= threshold:
            return grade
    return "F"


def score_trader(stats: TradingStats) -> TraderScore:
    win_rate_score = min(WIN_RATE_MAX, stats.win_rate / 100 * 40 * 1.5)
    profit_factor_score = min(PROFIT_FACTOR_MAX, stats.profit_factor / 3 * 30)

    # No losses yet: compare against a $1 loss instead of dividing by zero.
    rr_ratio = abs(stats.average_win / (stats.average_loss or 1))
    discipline_score = min(DISCIPLINE_MAX, rr_ratio * 15)

    total = _round_half_up(win_rate_score + profit_factor_score + discipline_score)
    return TraderScore(
        total_score=total,
        grade=grade_for(total),
        win_rate_score=win_rate_score,
        profit_factor_score=profit_factor_score,
        discipline_score=discipline_score,
    )
