"""Supabase client for persisting deals, annotations and trading plans.

Reads connection info from environment:
    SUPABASE_URL          – project URL (e.g. https://xxx.supabase.co)
    SUPABASE_SERVICE_KEY  – service_role key (bypasses RLS)

If either is missing, all operations gracefully return None / empty / False
so parsing and statistics still work in local dev without Supabase.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime
from typing import Any, Iterable, Optional

from tradejournal.parsers.deals import (
    BROKER_TZ,
    Deal,
    DealAnnotation,
    TradingPlan,
    deal_id as make_deal_id,
    exit_efficiency,
    parse_direction,
)

logger = logging.getLogger(__name__)

_client = None
_initialized = False

DEALS_TABLE = "deals"
PLANS_TABLE = "plans"


def _get_client():
    """Lazy-init Supabase client. Returns None if env vars are missing."""
    global _client, _initialized

    if _initialized:
        return _client

    _initialized = True

    url = os.environ.get("SUPABASE_URL")
    key = os.environ.get("SUPABASE_SERVICE_KEY")

    if not url or not key:
        logger.info(
            "Supabase not configured (SUPABASE_URL / SUPABASE_SERVICE_KEY missing). "
            "Deals will not be persisted."
        )
        return None

    try:
        from supabase import create_client
        _client = create_client(url, key)
        logger.info("Supabase client initialized for %s", url)
    except Exception:
        logger.exception("Failed to initialize Supabase client")
        _client = None

    return _client


def reset_client() -> None:
    """Forget the cached client so the next call re-reads the environment."""
    global _client, _initialized
    _client = None
    _initialized = False


def is_configured() -> bool:
    """Check if Supabase credentials are present."""
    return _get_client() is not None


# ---------------------------------------------------------------------------
# Deals
# ---------------------------------------------------------------------------


def fetch_deals(user_id: str) -> list[Deal]:
    """All deals for a user, most recent first."""
    client = _get_client()
    if client is None:
        return []

    try:
        resp = (
            client.table(DEALS_TABLE)
            .select("*")
            .eq("user_id", user_id)
            .order("time", desc=True)
            .execute()
        )
    except Exception:
        logger.exception("Failed to fetch deals for %s", user_id)
        return []

    deals = []
    for row in resp.data or []:
        try:
            deals.append(_row_to_deal(row))
        except Exception:
            logger.warning("Dropping unreadable deal row %s", row.get("id"), exc_info=True)
    logger.info("Fetched %d deals for %s", len(deals), user_id)
    return deals


def fetch_deal(user_id: str, deal_id: str) -> Optional[Deal]:
    """One deal by id, or None when it is missing or unreadable."""
    client = _get_client()
    if client is None:
        return None

    try:
        resp = (
            client.table(DEALS_TABLE)
            .select("*")
            .eq("user_id", user_id)
            .eq("id", deal_id)
            .limit(1)
            .execute()
        )
    except Exception:
        logger.exception("Failed to fetch deal %s", deal_id)
        return None

    if not resp.data:
        return None
    try:
        return _row_to_deal(resp.data[0])
    except Exception:
        logger.warning("Unreadable deal row %s", deal_id, exc_info=True)
        return None


def insert_deals(user_id: str, deals: Iterable[Deal]) -> int:
    """Write deals; rows already stored under the same (user_id, id) are left untouched.

    Returns the number of rows sent, or 0 on failure.
    """
    rows = [_deal_to_row(user_id, d) for d in deals]
    if not rows:
        return 0

    client = _get_client()
    if client is None:
        return 0

    try:
        client.table(DEALS_TABLE).upsert(
            rows, on_conflict="user_id,id", ignore_duplicates=True
        ).execute()
        logger.info("Saved %d deals for %s", len(rows), user_id)
        return len(rows)
    except Exception:
        logger.exception("Failed to save %d deals for %s", len(rows), user_id)
        return 0


def update_annotation(user_id: str, deal_id: str, annotation: DealAnnotation) -> bool:
    """Write only the annotation fields that are set. Returns True on success."""
    updates = annotation.to_row()
    if not updates:
        return True

    client = _get_client()
    if client is None:
        return False

    try:
        (
            client.table(DEALS_TABLE)
            .update(updates)
            .eq("user_id", user_id)
            .eq("id", deal_id)
            .execute()
        )
        logger.info("Updated annotation on deal %s (%s)", deal_id, ", ".join(updates))
        return True
    except Exception:
        logger.exception("Failed to update annotation on deal %s", deal_id)
        return False


def _deal_to_row(user_id: str, deal: Deal) -> dict[str, Any]:
    row = {
        "id": deal.id,
        "user_id": user_id,
        "symbol": deal.symbol,
        "direction": deal.direction.value,
        "time": deal.time.isoformat(),
        "entry_price": deal.entry_price,
        "closing_price": deal.closing_price,
        "volume": deal.volume,
        "net_pl": deal.net_pl,
        "balance": deal.balance,
        "mae": deal.mae,
        "mfe": deal.mfe,
        "excursions_estimated": deal.excursions_estimated,
    }
    row.update(
        DealAnnotation(
            entry_reason=deal.entry_reason,
            image_url=deal.image_url,
            ai_analysis=deal.ai_analysis,
        ).to_row()
    )
    return row


def _row_to_deal(row: dict[str, Any]) -> Deal:
    """Convert a Supabase row back to a Deal, on the broker's UTC+8 clock."""
    time = datetime.fromisoformat(str(row["time"]).replace("Z", "+00:00"))
    # timestamptz comes back in UTC
    time = time.astimezone(BROKER_TZ) if time.tzinfo else time.replace(tzinfo=BROKER_TZ)
    symbol = row["symbol"]
    entry_price = float(row.get("entry_price") or 0)
    volume = float(row.get("volume") or 0)
    net_pl = float(row.get("net_pl") or 0)
    mae = row.get("mae")
    mfe = row.get("mfe")
    return Deal(
        id=row.get("id") or make_deal_id(time, symbol, entry_price, volume),
        symbol=symbol,
        direction=parse_direction(row["direction"]),
        time=time,
        entry_price=entry_price,
        closing_price=float(row.get("closing_price") or 0),
        volume=volume,
        net_pl=net_pl,
        balance=float(row.get("balance") or 0),
        mae=float(mae) if mae is not None else None,
        mfe=float(mfe) if mfe is not None else None,
        exit_efficiency=exit_efficiency(net_pl, float(mfe) if mfe is not None else None),
        excursions_estimated=bool(row.get("excursions_estimated") or False),
        entry_reason=row.get("entry_reason"),
        image_url=row.get("image_url"),
        ai_analysis=row.get("ai_analysis"),
    )


# ---------------------------------------------------------------------------
# Plans
# ---------------------------------------------------------------------------


def fetch_plans(user_id: str) -> list[TradingPlan]:
    """All plans for a user, newest first."""
    client = _get_client()
    if client is None:
        return []

    try:
        resp = (
            client.table(PLANS_TABLE)
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .execute()
        )
        return [_row_to_plan(r) for r in resp.data or []]
    except Exception:
        logger.exception("Failed to fetch plans for %s", user_id)
        return []


def insert_plan(user_id: str, plan: TradingPlan) -> Optional[TradingPlan]:
    """Store a plan; returns it with the store-assigned id, or None on failure."""
    client = _get_client()
    if client is None:
        return None

    row = {
        "user_id": user_id,
        "timeframe": plan.timeframe,
        "asset": plan.asset,
        "scenario": plan.scenario,
        "image_url": plan.image_url,
    }
    try:
        resp = client.table(PLANS_TABLE).insert(row).execute()
        logger.info("Saved %s plan for %s on %s", plan.timeframe, plan.asset, user_id)
        return _row_to_plan(resp.data[0]) if resp.data else plan
    except Exception:
        logger.exception("Failed to save plan for %s", user_id)
        return None


def delete_plan(user_id: str, plan_id: str) -> bool:
    client = _get_client()
    if client is None:
        return False

    try:
        client.table(PLANS_TABLE).delete().eq("user_id", user_id).eq("id", plan_id).execute()
        logger.info("Deleted plan %s", plan_id)
        return True
    except Exception:
        logger.exception("Failed to delete plan %s", plan_id)
        return False


def active_plan_assets(user_id: str) -> list[str]:
    """Distinct assets across the user's plans, in first-seen order."""
    seen: dict[str, None] = {}
    for plan in fetch_plans(user_id):
        if plan.asset:
            seen.setdefault(plan.asset, None)
    return list(seen)


def _row_to_plan(row: dict[str, Any]) -> TradingPlan:
    created = row.get("created_at")
    return TradingPlan(
        id=row.get("id"),
        timeframe=row.get("timeframe", "week"),
        asset=row.get("asset", ""),
        scenario=row.get("scenario", ""),
        image_url=row.get("image_url"),
        created_at=datetime.fromisoformat(str(created).replace("Z", "+00:00")) if created else None,
    )
