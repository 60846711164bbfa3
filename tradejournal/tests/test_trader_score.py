"""Tests for the trader grade."""

from __future__ import annotations

import pytest

from tradejournal.analyzers.trader_score import WIN_RATE_MAX, grade_for, score_trader
from tradejournal.analyzers.trading_stats import TradingStats, calculate_stats


def test_saturated_stats_score_100():
    stats = TradingStats(total_deals=10, win_rate=100.0, profit_factor=5.0, average_win=100.0, average_loss=10.0)
    score = score_trader(stats)
    assert score.total_score == 100
    assert score.grade == "S"
    assert score.win_rate_score == WIN_RATE_MAX
    assert score.profit_factor_score == 30.0
    assert score.discipline_score == 30.0


def test_all_winners_without_losses(make_deal):
    # No losses: profit factor falls back to gross profit, loss denominator to 1.
    stats = calculate_stats([make_deal(300), make_deal(200)])
    score = score_trader(stats)
    assert score.total_score == 100
    assert score.grade == "S"


def test_empty_stats_is_f():
    score = score_trader(TradingStats())
    assert score.total_score == 0
    assert score.grade == "F"


def test_parts():
    stats = TradingStats(win_rate=50.0, profit_factor=1.5, average_win=100.0, average_loss=100.0)
    score = score_trader(stats)
    assert score.win_rate_score == pytest.approx(30.0)
    assert score.profit_factor_score == pytest.approx(15.0)
    assert score.discipline_score == pytest.approx(15.0)
    assert score.total_score == 60
    assert score.grade == "C"


def test_discipline_saturates_at_two_to_one():
    stats = TradingStats(average_win=20.0, average_loss=10.0)
    assert score_trader(stats).discipline_score == pytest.approx(30.0)


def test_total_rounds_half_up():
    # 7.5 + 15 + 0 = 22.5
    stats = TradingStats(win_rate=12.5, profit_factor=1.5)
    assert score_trader(stats).total_score == 23


@pytest.mark.parametrize(
    "total,grade",
    [
        (100, "S"),
        (95, "S"),
        (94, "A"),
        (85, "A"),
        (84, "B"),
        (75, "B"),
        (74, "C"),
        (60, "C"),
        (59, "D"),
        (50, "D"),
        (49, "F"),
        (0, "F"),
    ],
)
def test_grade_thresholds(total, grade):
    assert grade_for(total) == grade


def test_score_dict_keys():
    assert set(score_trader(TradingStats()).to_dict()) == {
        "total_score",
        "grade",
        "win_rate_score",
        "profit_factor_score",
        "discipline_score",
    }
