"""FastAPI service for the trade journal.

Import, annotate and review deals; serve statistics, the trader grade and
chart datasets; relay questions to the AI coach. Deals and plans live in
Supabase; parsing and statistics run locally on every request.
"""

from __future__ import annotations

import logging
import os
from datetime import MAXYEAR, MINYEAR, datetime, timezone
from typing import Any, Optional, Union

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from tradejournal.analyzers.breakdowns import (
    daily_summary,
    equity_curve,
    hourly_heatmap,
    symbol_performance,
    volume_scatter,
)
from tradejournal.analyzers.trader_score import score_trader
from tradejournal.analyzers.trading_stats import calculate_stats, filter_by_symbol, unique_symbols
from tradejournal.extraction.screenshot_extractor import parse_trade_from_image
from tradejournal.narrative.coach import (
    analyze_single_trade,
    check_correlation,
    diagnose_risk,
    generate_trading_insights,
)
from tradejournal.parsers.deal_export import DealExportParser
from tradejournal.parsers.deals import DealAnnotation, TradingPlan
from tradejournal.parsers.manual_entry import ManualEntryError, build_manual_deal
from tradejournal.storage import supabase_client as store

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)
logger = logging.getLogger(__name__)

# ─── Startup env-var check ───────────────────────────────────────────────────
logger.info(
    "[STARTUP] Env check: SUPABASE_URL=%s, SUPABASE_SERVICE_KEY=%s, ANTHROPIC_API_KEY=%s",
    "set" if os.environ.get("SUPABASE_URL") else "missing",
    "set" if os.environ.get("SUPABASE_SERVICE_KEY") else "missing",
    "set" if os.environ.get("ANTHROPIC_API_KEY") else "missing",
)

app = FastAPI(
    title="Trade Journal",
    description="Deal import, statistics and AI coaching",
    version="1.0.0",
)

_NOT_CONFIGURED = {"error": "Supabase not configured"}


# ─── Endpoints ───────────────────────────────────────────────────────────────


@app.get("/health")
def health() -> dict[str, Any]:
    return {
        "status": "ok",
        "version": "1.0.0",
        "supabase_connected": store.is_configured(),
        "ai_available": bool(os.environ.get("ANTHROPIC_API_KEY")),
    }


class ParseRequest(BaseModel):
    csv_text: str


@app.post("/parse")
def parse_export(req: ParseRequest) -> JSONResponse:
    """Parse an export without storing it; reports skipped rows for diagnosis."""
    parser = DealExportParser()
    deals = parser.parse_string(req.csv_text)
    return JSONResponse({
        "deals": [d.to_dict() for d in deals],
        "total_rows": parser.total_rows,
        "skipped_rows": parser.skipped_rows,
        "skipped": [{"line": s.line_number, "reason": s.reason} for s in parser.skipped],
    })


class ImportRequest(BaseModel):
    user_id: str
    csv_text: str


@app.post("/deals/import")
def import_deals(req: ImportRequest) -> JSONResponse:
    if not store.is_configured():
        return JSONResponse(_NOT_CONFIGURED, status_code=503)

    parser = DealExportParser()
    deals = parser.parse_string(req.csv_text)
    if not deals:
        return JSONResponse(
            {"error": "No deals found in export", "skipped_rows": parser.skipped_rows},
            status_code=400,
        )

    saved = store.insert_deals(req.user_id, deals)
    if saved == 0:
        return JSONResponse({"error": "Import failed"}, status_code=500)

    logger.info("[IMPORT] %s: %d deals sent, %d rows skipped", req.user_id, saved, parser.skipped_rows)
    return JSONResponse({"imported": saved, "skipped_rows": parser.skipped_rows})


class ManualDealRequest(BaseModel):
    user_id: str
    symbol: str = ""
    direction: str = "Buy"
    entry_price: Union[float, str, None] = None
    closing_price: Union[float, str, None] = None
    volume: Union[float, str, None] = None
    net_pl: Union[float, str, None] = None
    time: Optional[str] = None


@app.post("/deals/manual")
def add_manual_deal(req: ManualDealRequest) -> JSONResponse:
    try:
        deal = build_manual_deal(req.model_dump(exclude={"user_id"}))
    except ManualEntryError as e:
        return JSONResponse({"error": str(e)}, status_code=400)

    if not store.is_configured():
        return JSONResponse(_NOT_CONFIGURED, status_code=503)
    if store.insert_deals(req.user_id, [deal]) == 0:
        return JSONResponse({"error": "Save failed"}, status_code=500)
    return JSONResponse({"deal": deal.to_dict()})


class ScanRequest(BaseModel):
    user_id: str
    image: str  # data URL


@app.post("/deals/scan")
def scan_deal(req: ScanRequest) -> JSONResponse:
    if not store.is_configured():
        return JSONResponse(_NOT_CONFIGURED, status_code=503)

    deal = parse_trade_from_image(req.image)
    if deal is None:
        return JSONResponse({"error": "AI scan failed. Please try a clearer image."}, status_code=422)

    deal = deal.with_annotation(DealAnnotation(image_url=req.image))
    if store.insert_deals(req.user_id, [deal]) == 0:
        return JSONResponse({"error": "Save failed"}, status_code=500)

    logger.info("[SCAN] %s: saved scanned deal %s", req.user_id, deal.symbol)
    return JSONResponse({"deal": deal.to_dict()})


@app.get("/deals")
def list_deals(user_id: str, symbol: str = "All") -> JSONResponse:
    deals = store.fetch_deals(user_id)
    return JSONResponse({
        "deals": [d.to_dict() for d in filter_by_symbol(deals, symbol)],
        "symbols": unique_symbols(deals),
    })


class AnnotationRequest(BaseModel):
    user_id: str
    entry_reason: Optional[str] = None
    image_url: Optional[str] = None
    ai_analysis: Optional[str] = None


@app.patch("/deals/{deal_id}/annotation")
def annotate_deal(deal_id: str, req: AnnotationRequest) -> JSONResponse:
    if not store.is_configured():
        return JSONResponse(_NOT_CONFIGURED, status_code=503)

    annotation = DealAnnotation(
        entry_reason=req.entry_reason,
        image_url=req.image_url,
        ai_analysis=req.ai_analysis,
    )
    if not store.update_annotation(req.user_id, deal_id, annotation):
        return JSONResponse({"error": "Update failed"}, status_code=500)
    return JSONResponse({"updated": list(annotation.to_row())})


class UserRequest(BaseModel):
    user_id: str
    symbol: str = "All"


@app.post("/deals/{deal_id}/analyze")
def analyze_deal(deal_id: str, req: UserRequest) -> JSONResponse:
    if not store.is_configured():
        return JSONResponse(_NOT_CONFIGURED, status_code=503)

    deal = store.fetch_deal(req.user_id, deal_id)
    if deal is None:
        return JSONResponse({"error": "Deal not found"}, status_code=404)

    analysis = analyze_single_trade(deal)
    store.update_annotation(req.user_id, deal_id, DealAnnotation(ai_analysis=analysis))
    return JSONResponse({"deal_id": deal_id, "ai_analysis": analysis})


@app.get("/stats")
def get_stats(
    user_id: str,
    symbol: str = "All",
    year: Optional[int] = None,
    month: Optional[int] = None,
) -> JSONResponse:
    now = datetime.now(timezone.utc)
    year = now.year if year is None else year
    month = now.month if month is None else month
    if not 1 <= month <= 12:
        return JSONResponse({"error": f"Invalid month: {month}"}, status_code=400)
    if not MINYEAR <= year <= MAXYEAR:
        return JSONResponse({"error": f"Invalid year: {year}"}, status_code=400)

    deals = filter_by_symbol(store.fetch_deals(user_id), symbol)
    stats = calculate_stats(deals)

    return JSONResponse({
        "stats": stats.to_dict(),
        "score": score_trader(stats).to_dict(),
        "equity_curve": equity_curve(deals),
        "symbol_performance": symbol_performance(deals),
        "heatmap": hourly_heatmap(deals),
        "calendar": daily_summary(deals, year, month),
        "scatter": volume_scatter(deals),
    })


@app.post("/stats/diagnosis")
def risk_diagnosis(req: UserRequest) -> JSONResponse:
    stats = calculate_stats(filter_by_symbol(store.fetch_deals(req.user_id), req.symbol))
    if stats.total_deals == 0:
        return JSONResponse({"diagnosis": None})
    return JSONResponse({"diagnosis": diagnose_risk(stats)})


class ChatRequest(BaseModel):
    user_id: str
    message: str
    symbol: str = "All"


@app.post("/chat")
def chat(req: ChatRequest) -> JSONResponse:
    if not req.message.strip():
        return JSONResponse({"error": "Empty message"}, status_code=400)

    deals = filter_by_symbol(store.fetch_deals(req.user_id), req.symbol)
    reply = generate_trading_insights(req.message, calculate_stats(deals), deals)
    return JSONResponse({"role": "model", "text": reply})


@app.get("/plans")
def list_plans(user_id: str, timeframe: Optional[str] = None) -> JSONResponse:
    plans = store.fetch_plans(user_id)
    if timeframe:
        plans = [p for p in plans if p.timeframe == timeframe]
    return JSONResponse({
        "plans": [
            {
                "id": p.id,
                "timeframe": p.timeframe,
                "asset": p.asset,
                "scenario": p.scenario,
                "image_url": p.image_url,
                "created_at": p.created_at.isoformat() if p.created_at else None,
            }
            for p in plans
        ]
    })


class PlanRequest(BaseModel):
    user_id: str
    asset: str
    scenario: str
    timeframe: str = "week"
    image_url: Optional[str] = None


@app.post("/plans")
def add_plan(req: PlanRequest) -> JSONResponse:
    if req.timeframe not in ("week", "month"):
        return JSONResponse({"error": f"Invalid timeframe: {req.timeframe}"}, status_code=400)
    if not store.is_configured():
        return JSONResponse(_NOT_CONFIGURED, status_code=503)

    plan = store.insert_plan(
        req.user_id,
        TradingPlan(
            asset=req.asset,
            scenario=req.scenario,
            timeframe=req.timeframe,
            image_url=req.image_url,
        ),
    )
    if plan is None:
        return JSONResponse({"error": "Save failed"}, status_code=500)
    return JSONResponse({"id": plan.id, "asset": plan.asset, "timeframe": plan.timeframe})


@app.delete("/plans/{plan_id}")
def remove_plan(plan_id: str, user_id: str) -> JSONResponse:
    if not store.is_configured():
        return JSONResponse(_NOT_CONFIGURED, status_code=503)
    if not store.delete_plan(user_id, plan_id):
        return JSONResponse({"error": "Delete failed"}, status_code=500)
    return JSONResponse({"deleted": plan_id})


@app.get("/plans/correlation")
def plan_correlation(user_id: str) -> JSONResponse:
    analysis = check_correlation(store.active_plan_assets(user_id))
    return JSONResponse(analysis.model_dump())
