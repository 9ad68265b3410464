"""Supabase repository helpers for event, master and user-submitted wines."""

import logging
from typing import Any, Dict, List, Optional

import pandas as pd
from supabase import Client

from palate import config
from palate.constants import Tables, UserWineStatus
from palate.error_handling import DataValidationError, raise_backend_error
from palate.schema import UserWineForm, WineForm
from palate.similarity import build_search_filter
from palate.utils import blank_to_none, sanitize_text_input, sort_wines, utcnow

logger = logging.getLogger(__name__)

EVENT_WINE_SELECT = "*, event_locations (location_name, location_order)"


def _first(res) -> Dict[str, Any]:
    data = res.data or []
    return data[0] if data else {}


# =======================
# EVENT WINES
# =======================

def list_event_wines(sb: Client, event_id: str) -> List[Dict[str, Any]]:
    """Wines of an event in pouring order: crawl stop first, then tasting order."""
    try:
        res = (
            sb.table(Tables.EVENT_WINES)
            .select(EVENT_WINE_SELECT)
            .eq("event_id", event_id)
            .execute()
        )
    except Exception as e:
        raise_backend_error(e, "load wines")
    return sort_wines(res.data or [])


def list_wines_for_events(sb: Client, event_ids: List[str]) -> List[Dict[str, Any]]:
    """Wines across several events, for admin and curator analytics."""
    if not event_ids:
        return []
    try:
        res = (
            sb.table(Tables.EVENT_WINES)
            .select("id, event_id, wine_name, producer, wine_type, wine_master_id, region, country")
            .in_("event_id", event_ids)
            .execute()
        )
    except Exception as e:
        raise_backend_error(e, "load wines")
    return res.data or []


def add_event_wine(sb: Client, event_id: str, form: WineForm) -> Dict[str, Any]:
    """
    Pour a wine at an event.

    A wine picked from the master list bumps that master's usage count.
    """
    row = {key: blank_to_none(value) for key, value in form.model_dump(mode="json").items()}
    row["event_id"] = event_id
    row["sommelier_notes"] = sanitize_text_input(form.sommelier_notes)

    try:
        res = sb.table(Tables.EVENT_WINES).insert(row).execute()
    except Exception as e:
        raise_backend_error(e, "add wine")

    if form.wine_master_id:
        master = get_master_wine(sb, form.wine_master_id)
        if master:
            increment_master_usage(sb, master)

    logger.info(f"Added '{form.wine_name}' to event {event_id}")
    return _first(res) or row


def update_event_wine(sb: Client, wine_id: str, form: WineForm) -> Dict[str, Any]:
    """Save an edited wine; the master link and usage count are left as they were."""
    fields = form.model_dump(mode="json", exclude={"wine_master_id"})
    changes = {key: blank_to_none(value) for key, value in fields.items()}
    changes["sommelier_notes"] = sanitize_text_input(form.sommelier_notes)
    try:
        res = sb.table(Tables.EVENT_WINES).update(changes).eq("id", wine_id).execute()
    except Exception as e:
        raise_backend_error(e, "update wine")
    return _first(res)


def delete_event_wine(sb: Client, wine_id: str) -> None:
    try:
        sb.table(Tables.EVENT_WINES).delete().eq("id", wine_id).execute()
    except Exception as e:
        raise_backend_error(e, "delete wine")
    logger.info(f"Deleted event wine {wine_id}")


def count_event_wines(sb: Client) -> int:
    try:
        res = sb.table(Tables.EVENT_WINES).select("id", count="exact").execute()
    except Exception as e:
        raise_backend_error(e, "count wines")
    return res.count or 0


# =======================
# MASTER WINES
# =======================

def search_master_wines(sb: Client, query: str, limit: int = 10) -> List[Dict[str, Any]]:
    """Master wines whose name or producer contains the query, most used first."""
    query = (query or "").strip()
    if len(query) < 2:
        return []
    try:
        res = (
            sb.table(Tables.MASTER_WINES)
            .select("*")
            .or_(build_search_filter({"wine_name": query, "producer": query}))
            .order("usage_count", desc=True)
            .limit(limit)
            .execute()
        )
    except Exception as e:
        raise_backend_error(e, "search wines")
    return res.data or []


def list_master_wines(sb: Client, limit: int = config.MASTER_LIST_LIMIT) -> List[Dict[str, Any]]:
    """Master wines alphabetically."""
    try:
        res = (
            sb.table(Tables.MASTER_WINES)
            .select("*")
            .order("wine_name")
            .limit(limit)
            .execute()
        )
    except Exception as e:
        raise_backend_error(e, "load master wines")
    return res.data or []


def master_wines_frame(sb: Client, limit: int = config.MASTER_LIST_LIMIT) -> pd.DataFrame:
    """Master wines as a DataFrame for the curator table."""
    columns = ["wine_name", "producer", "vintage", "wine_type", "region", "country", "usage_count"]
    df = pd.DataFrame(list_master_wines(sb, limit))
    if df.empty:
        return pd.DataFrame(columns=columns)
    for column in columns:
        if column not in df.columns:
            df[column] = None
    df["usage_count"] = df["usage_count"].fillna(0).astype(int)
    return df[columns]


def get_master_wine(sb: Client, master_id: str) -> Optional[Dict[str, Any]]:
    try:
        res = sb.table(Tables.MASTER_WINES).select("*").eq("id", master_id).limit(1).execute()
    except Exception as e:
        raise_backend_error(e, "load master wine")
    return _first(res) or None


def increment_master_usage(sb: Client, master: Dict[str, Any]) -> int:
    """Bump a master wine's usage count and return the new value."""
    usage = (master.get("usage_count") or 0) + 1
    try:
        sb.table(Tables.MASTER_WINES).update({"usage_count": usage}).eq("id", master["id"]).execute()
    except Exception as e:
        raise_backend_error(e, "update master wine")
    return usage


def count_master_wines(sb: Client) -> int:
    try:
        res = sb.table(Tables.MASTER_WINES).select("id", count="exact").execute()
    except Exception as e:
        raise_backend_error(e, "count master wines")
    return res.count or 0


# =======================
# USER WINES
# =======================

def list_user_wines(
    sb: Client,
    status: Optional[str] = None,
    user_id: Optional[str] = None
) -> List[Dict[str, Any]]:
    """
    User-submitted wines, newest first, each with the submitter's display name.

    Args:
        sb: Supabase client
        status: Only wines in this review status
        user_id: Only wines submitted by this user
    """
    try:
        query = sb.table(Tables.USER_WINES).select("*")
        if status:
            query = query.eq("status", status)
        if user_id:
            query = query.eq("user_id", user_id)
        wines = query.order("added_date", desc=True).execute().data or []

        user_ids = sorted({w["user_id"] for w in wines if w.get("user_id")})
        names = {}
        if user_ids:
            profiles = sb.table(Tables.PROFILES).select("id, display_name").in_("id", user_ids).execute()
            names = {p["id"]: p.get("display_name") for p in profiles.data or []}
    except Exception as e:
        raise_backend_error(e, "load submitted wines")

    return [{**wine, "user_name": names.get(wine.get("user_id"))} for wine in wines]


def submit_user_wine(
    sb: Client,
    user_id: str,
    form: UserWineForm,
    master: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """
    Add a wine to a user's collection.

    A wine picked from the master list is verified immediately; anything else
    waits in the curator review queue.

    Raises:
        DataValidationError: The master wine is already in the collection
    """
    if master:
        try:
            existing = (
                sb.table(Tables.USER_WINES)
                .select("id")
                .eq("user_id", user_id)
                .eq("wine_master_id", master["id"])
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise_backend_error(e, "check collection")
        if existing.data:
            raise DataValidationError("This wine is already in your collection")

    row = {key: blank_to_none(value) for key, value in form.model_dump(mode="json").items()}
    row.update({
        "user_id": user_id,
        "wine_master_id": master["id"] if master else None,
        "personal_notes": sanitize_text_input(form.personal_notes),
        "status": (UserWineStatus.VERIFIED if master else UserWineStatus.PENDING).value,
        "added_date": utcnow().isoformat(),
    })

    try:
        res = sb.table(Tables.USER_WINES).insert(row).execute()
    except Exception as e:
        raise_backend_error(e, "save wine")

    logger.info(f"User {user_id} submitted '{form.wine_name}' ({row['status']})")
    return _first(res) or row
