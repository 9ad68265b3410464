"""Supabase repository helpers for rating tables."""

import logging
from typing import Any, Dict, Iterable, List, Optional

from supabase import Client

from palate.constants import Tables
from palate.error_handling import raise_backend_error
from palate.schema import RatingForm
from palate.utils import sanitize_text_input

logger = logging.getLogger(__name__)

# Joined shape consumed by taste profiles, recommendations and exports
USER_RATINGS_SELECT = (
    "id, event_wine_id, rating, would_buy, personal_notes, created_at, "
    "event_wines (id, event_id, wine_name, producer, vintage, wine_type, region, country, "
    "price_point, grape_varieties, wine_style), "
    "user_wine_descriptors (descriptors (name, category))"
)


def get_user_rating(sb: Client, user_id: str, event_wine_id: str) -> Optional[Dict[str, Any]]:
    """Return the user's rating of one wine, or None."""
    try:
        res = (
            sb.table(Tables.RATINGS)
            .select("id, rating, personal_notes, would_buy")
            .eq("user_id", user_id)
            .eq("event_wine_id", event_wine_id)
            .limit(1)
            .execute()
        )
    except Exception as e:
        raise_backend_error(e, "load rating")
    rows = res.data or []
    return rows[0] if rows else None


def save_rating(sb: Client, user_id: str, event_wine_id: str, form: RatingForm) -> bool:
    """
    Store a rating, updating the existing one for this user and wine.

    Args:
        sb: Supabase client
        user_id: Profile id of the taster
        event_wine_id: Wine being rated
        form: Validated rating fields

    Returns:
        True when an existing rating was updated, False when a new one was inserted
    """
    row = {
        "user_id": user_id,
        "event_wine_id": event_wine_id,
        "rating": form.rating,
        "personal_notes": sanitize_text_input(form.personal_notes),
        "would_buy": form.would_buy,
    }

    existing = get_user_rating(sb, user_id, event_wine_id)
    try:
        if existing:
            (
                sb.table(Tables.RATINGS)
                .update(row)
                .eq("user_id", user_id)
                .eq("event_wine_id", event_wine_id)
                .execute()
            )
        else:
            sb.table(Tables.RATINGS).insert(row).execute()
    except Exception as e:
        raise_backend_error(e, "save rating")

    logger.info(f"{'Updated' if existing else 'Saved'} rating {form.rating} by {user_id} for {event_wine_id}")
    return existing is not None


def list_user_ratings(sb: Client, user_id: str) -> List[Dict[str, Any]]:
    """All of a user's ratings with the rated wine and descriptors joined."""
    try:
        res = (
            sb.table(Tables.RATINGS)
            .select(USER_RATINGS_SELECT)
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .execute()
        )
    except Exception as e:
        raise_backend_error(e, "load your ratings")
    return res.data or []


def list_ratings_for_wines(sb: Client, wine_ids: Iterable[str]) -> List[Dict[str, Any]]:
    """Every rating of the given event wines."""
    wine_ids = list(wine_ids)
    if not wine_ids:
        return []
    try:
        res = (
            sb.table(Tables.RATINGS)
            .select("id, event_wine_id, user_id, rating, would_buy, personal_notes, created_at")
            .in_("event_wine_id", wine_ids)
            .execute()
        )
    except Exception as e:
        raise_backend_error(e, "load ratings")
    return res.data or []


def list_user_ratings_for_wines(sb: Client, user_id: str, wine_ids: Iterable[str]) -> Dict[str, Dict[str, Any]]:
    """A user's ratings of the given wines keyed by event wine id."""
    wine_ids = list(wine_ids)
    if not wine_ids:
        return {}
    try:
        res = (
            sb.table(Tables.RATINGS)
            .select("event_wine_id, rating, personal_notes, would_buy")
            .eq("user_id", user_id)
            .in_("event_wine_id", wine_ids)
            .execute()
        )
    except Exception as e:
        raise_backend_error(e, "load your ratings")
    return {row["event_wine_id"]: row for row in res.data or []}


def list_all_ratings(sb: Client) -> List[Dict[str, Any]]:
    """Platform-wide ratings for curator analytics."""
    try:
        res = (
            sb.table(Tables.RATINGS)
            .select("id, event_wine_id, user_id, rating, would_buy, created_at")
            .execute()
        )
    except Exception as e:
        raise_backend_error(e, "load ratings")
    return res.data or []


def list_descriptor_links(sb: Client, rating_ids: Iterable[str]) -> List[Dict[str, Any]]:
    """Descriptor links (`descriptors.name`) attached to the given ratings."""
    rating_ids = [rid for rid in rating_ids if rid]
    if not rating_ids:
        return []
    try:
        res = (
            sb.table(Tables.RATING_DESCRIPTORS)
            .select("rating_id, descriptors (name, category)")
            .in_("rating_id", rating_ids)
            .execute()
        )
    except Exception as e:
        raise_backend_error(e, "load descriptors")
    return res.data or []
