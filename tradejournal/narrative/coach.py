"""
Jarvis trading coach: AI commentary on deals and statistics via Claude.

Every entry point returns something usable. Without ANTHROPIC_API_KEY, or when
the API keeps failing, callers get a fixed fallback message instead of an
exception, so the dashboard can always render.
"""

from __future__ import annotations

import json
import logging
from typing import Optional, Sequence

from pydantic import BaseModel, Field, ValidationError

from tradejournal.analyzers.trading_stats import TradingStats
from tradejournal.parsers.deals import Deal

from .claude import (
    ANALYSIS_MODEL,
    FAST_MODEL,
    call_claude,
    get_api_key,
    image_block,
    is_image_data_url,
    strip_code_fences,
    with_retry,
)
from .prompts import (
    COACH_SYSTEM_PROMPT,
    RISK_SYSTEM_PROMPT,
    build_correlation_prompt,
    build_insights_prompt,
    build_risk_prompt,
    build_trade_review_prompt,
)

logger = logging.getLogger(__name__)

NO_KEY_MESSAGE = "AI coach is offline: set ANTHROPIC_API_KEY to enable commentary."
INSIGHTS_FALLBACK = "Something went wrong while analyzing. Please try again later."
TRADE_REVIEW_FALLBACK = (
    "Trade review failed. If a chart is attached, make sure it is a reasonably "
    "sized PNG/JPEG/WebP image."
)
RISK_FALLBACK = "Performance scan failed. Please check the connection and retry."
CORRELATION_FALLBACK = "Correlation check is unavailable right now."
FEW_ASSETS_MESSAGE = "Fewer than 2 assets monitored: no correlation risk."


class CorrelationAnalysis(BaseModel):
    has_risk: bool = False
    correlated_pairs: list[str] = Field(default_factory=list)
    explanation: str = ""


def generate_trading_insights(
    question: str,
    stats: TradingStats,
    recent_deals: Sequence[Deal],
    api_key: str | None = None,
) -> str:
    """Answer a free-form question with the trader's stats and latest deals as context."""
    key = get_api_key(api_key)
    if not key:
        logger.warning("No ANTHROPIC_API_KEY set; returning placeholder insights")
        return NO_KEY_MESSAGE

    prompt = build_insights_prompt(question, stats, recent_deals)
    try:
        text = with_retry(
            lambda: call_claude(key, prompt, system_prompt=COACH_SYSTEM_PROMPT, model=ANALYSIS_MODEL),
            "Insights",
        )
    except Exception:
        logger.error("Claude API failed for insights; returning fallback")
        return INSIGHTS_FALLBACK
    return text or INSIGHTS_FALLBACK


def analyze_single_trade(deal: Deal, api_key: str | None = None) -> str:
    """Coach review of one deal, looking at its attached chart when there is one."""
    key = get_api_key(api_key)
    if not key:
        logger.warning("No ANTHROPIC_API_KEY set; skipping trade review for %s", deal.id)
        return NO_KEY_MESSAGE

    has_image = is_image_data_url(deal.image_url)
    content: list[dict] = []
    if has_image:
        content.append(image_block(deal.image_url))
    content.append({"type": "text", "text": build_trade_review_prompt(deal, has_image)})

    try:
        text = with_retry(
            lambda: call_claude(key, content, model=ANALYSIS_MODEL),
            f"Trade review {deal.id}",
        )
    except Exception:
        logger.error("Claude API failed reviewing deal %s; returning fallback", deal.id)
        return TRADE_REVIEW_FALLBACK
    return text or TRADE_REVIEW_FALLBACK


def diagnose_risk(stats: TradingStats, api_key: str | None = None) -> str:
    """Short risk:reward diagnosis of the aggregate statistics."""
    key = get_api_key(api_key)
    if not key:
        logger.warning("No ANTHROPIC_API_KEY set; returning placeholder diagnosis")
        return NO_KEY_MESSAGE

    prompt = build_risk_prompt(stats)
    try:
        text = with_retry(
            lambda: call_claude(
                key, prompt, system_prompt=RISK_SYSTEM_PROMPT, model=FAST_MODEL, max_tokens=800
            ),
            "Risk diagnosis",
        )
    except Exception:
        logger.error("Claude API failed for risk diagnosis; returning fallback")
        return RISK_FALLBACK
    return text or RISK_FALLBACK


def parse_correlation(text: str) -> Optional[CorrelationAnalysis]:
    """Validate the model's JSON reply. Returns None when it is not usable."""
    cleaned = strip_code_fences(text or "")
    start = cleaned.find("{")
    end = cleaned.rfind("}") + 1
    if start < 0 or end <= start:
        return None
    try:
        return CorrelationAnalysis.model_validate(json.loads(cleaned[start:end]))
    except (json.JSONDecodeError, ValidationError):
        logger.warning("Unusable correlation response: %s", cleaned[:200])
        return None


def check_correlation(assets: Sequence[str], api_key: str | None = None) -> CorrelationAnalysis:
    """Warn when the planned assets are highly positively correlated."""
    unique_assets = list(dict.fromkeys(a for a in assets if a))
    if len(unique_assets) < 2:
        return CorrelationAnalysis(explanation=FEW_ASSETS_MESSAGE)

    key = get_api_key(api_key)
    if not key:
        logger.warning("No ANTHROPIC_API_KEY set; skipping correlation check")
        return CorrelationAnalysis(explanation=NO_KEY_MESSAGE)

    prompt = build_correlation_prompt(unique_assets)
    try:
        text = with_retry(
            lambda: call_claude(key, prompt, model=FAST_MODEL, max_tokens=800),
            "Correlation check",
        )
    except Exception:
        logger.error("Claude API failed for correlation check; returning fallback")
        return CorrelationAnalysis(explanation=CORRELATION_FALLBACK)

    return parse_correlation(text) or CorrelationAnalysis(explanation=CORRELATION_FALLBACK)
