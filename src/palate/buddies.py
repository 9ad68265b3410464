"""
Tasting buddies.

Attendees swap short buddy codes at an event to connect. Once the event is
closed, each buddy pair can compare ratings of the wines they both tasted.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Mapping, Optional, Sequence

from supabase import Client

from palate import config
from palate.constants import AGREEMENT_TOLERANCE, RATING_SCALE, Tables
from palate.error_handling import BuddyCodeError, raise_backend_error
from palate.ratings_repo import list_ratings_for_wines
from palate.utils import generate_buddy_code, normalize_code, parse_timestamp, round_half_up, utcnow

logger = logging.getLogger(__name__)

MAX_CODE_ATTEMPTS = 5


@dataclass
class Buddy:
    buddy_id: str
    buddy_name: str
    is_permanent: bool = False
    connected_at_event_id: Optional[str] = None
    connected_at_event_name: Optional[str] = None
    created_at: Optional[str] = None


@dataclass
class BuddyConnection:
    """Outcome of redeeming a buddy code."""
    buddy_id: str
    buddy_name: str
    already_connected: bool = False

    @property
    def message(self) -> str:
        if self.already_connected:
            return "You are already tasting buddies!"
        return "Successfully connected!"


@dataclass
class WineAgreement:
    """Both users' ratings of one wine."""
    wine_id: str
    wine_name: str
    producer: Optional[str]
    user_rating: int
    buddy_rating: int
    user_notes: Optional[str] = None
    buddy_notes: Optional[str] = None

    @property
    def difference(self) -> int:
        return abs(self.user_rating - self.buddy_rating)


@dataclass
class BuddyComparison:
    buddy_id: str
    buddy_name: str
    taste_match_percent: int = 0
    wines_agreed: List[WineAgreement] = field(default_factory=list)
    wines_disagreed: List[WineAgreement] = field(default_factory=list)

    @property
    def common_wines(self) -> int:
        return len(self.wines_agreed) + len(self.wines_disagreed)


# =======================
# PURE HELPERS
# =======================

def pair(user_id: str, buddy_id: str) -> tuple:
    """Buddy pairs are stored with the smaller id first."""
    return (user_id, buddy_id) if user_id < buddy_id else (buddy_id, user_id)


def taste_match_percent(differences: Sequence[int]) -> int:
    """
    How closely two tasters agree, 100 for identical ratings.

    The mean absolute difference is scaled against the widest possible gap
    on the rating scale. No common wines means no match.
    """
    if not differences:
        return 0
    max_gap = RATING_SCALE[-1] - RATING_SCALE[0]
    mean_gap = sum(differences) / len(differences)
    return int(round_half_up(100 * (1 - mean_gap / max_gap), 0))


def _wine_id(rating: Mapping[str, Any]) -> Optional[str]:
    wine = rating.get("event_wines") or {}
    return wine.get("id") or rating.get("event_wine_id")


def compare_ratings(
    user_ratings: Sequence[Mapping[str, Any]],
    buddy_ratings: Sequence[Mapping[str, Any]],
    buddy_id: str = "",
    buddy_name: str = "Unknown",
    wine_names: Optional[Mapping[str, Mapping[str, Any]]] = None
) -> BuddyComparison:
    """
    Compare two tasters over the wines both rated.

    Args:
        user_ratings: The user's rating rows (`event_wine_id` or joined `event_wines`)
        buddy_ratings: The buddy's rating rows
        buddy_id: Buddy profile id
        buddy_name: Buddy display name
        wine_names: Optional wine id -> wine row used for names and producers

    Returns:
        Comparison with agreements (within one star) closest first and
        disagreements widest first
    """
    wine_names = wine_names or {}
    buddy_by_wine = {_wine_id(r): r for r in buddy_ratings}

    agreed: List[WineAgreement] = []
    disagreed: List[WineAgreement] = []
    for mine in user_ratings:
        wine_id = _wine_id(mine)
        theirs = buddy_by_wine.get(wine_id)
        if wine_id is None or theirs is None:
            continue

        wine = mine.get("event_wines") or wine_names.get(wine_id) or {}
        agreement = WineAgreement(
            wine_id=wine_id,
            wine_name=wine.get("wine_name") or "Unknown Wine",
            producer=wine.get("producer"),
            user_rating=mine["rating"],
            buddy_rating=theirs["rating"],
            user_notes=mine.get("personal_notes"),
            buddy_notes=theirs.get("personal_notes"),
        )
        if agreement.difference <= AGREEMENT_TOLERANCE:
            agreed.append(agreement)
        else:
            disagreed.append(agreement)

    agreed.sort(key=lambda a: a.difference)
    disagreed.sort(key=lambda a: a.difference, reverse=True)

    return BuddyComparison(
        buddy_id=buddy_id,
        buddy_name=buddy_name,
        taste_match_percent=taste_match_percent([a.difference for a in agreed + disagreed]),
        wines_agreed=agreed,
        wines_disagreed=disagreed,
    )


def is_event_closed(event: Mapping[str, Any], now: Optional[datetime] = None) -> bool:
    """
    Results are visible once an event is closed.

    An event counts as closed when an admin closed it, or once a full day
    has passed since its date.
    """
    if event.get("is_closed"):
        return True

    event_date = parse_timestamp(event.get("event_date"))
    if event_date is None:
        return False
    return (now or utcnow()) > event_date + timedelta(days=1)


# =======================
# BACKEND OPERATIONS
# =======================

def get_or_create_buddy_code(sb: Client, user_id: str, event_id: str) -> str:
    """
    The user's buddy code for an event, creating one when none is valid.

    Raises:
        BuddyCodeError: No unused code could be stored
    """
    now = utcnow()
    try:
        res = (
            sb.table(Tables.BUDDY_CODES)
            .select("code, expires_at")
            .eq("user_id", user_id)
            .eq("event_id", event_id)
            .gt("expires_at", now.isoformat())
            .limit(1)
            .execute()
        )
    except Exception as e:
        raise_backend_error(e, "load buddy code")

    if res.data:
        return res.data[0]["code"]

    expires_at = now + timedelta(days=config.BUDDY_CODE_DAYS)
    for _ in range(MAX_CODE_ATTEMPTS):
        code = generate_buddy_code()
        try:
            taken = sb.table(Tables.BUDDY_CODES).select("user_id").eq("code", code).limit(1).execute()
            if taken.data:
                continue
            sb.table(Tables.BUDDY_CODES).upsert({
                "user_id": user_id,
                "event_id": event_id,
                "code": code,
                "expires_at": expires_at.isoformat(),
            }).execute()
        except Exception as e:
            raise_backend_error(e, "create buddy code")
        logger.info(f"Buddy code {code} created for {user_id} at event {event_id}")
        return code

    raise BuddyCodeError("Failed to create buddy code")


def connect_with_buddy(sb: Client, user_id: str, buddy_code: str, event_id: str) -> BuddyConnection:
    """
    Redeem another attendee's buddy code.

    Connecting twice is harmless: an existing pair is reported as such.

    Raises:
        BuddyCodeError: The code is unknown or expired, or belongs to the user
    """
    code = normalize_code(buddy_code)
    if not code:
        raise BuddyCodeError()

    try:
        res = (
            sb.table(Tables.BUDDY_CODES)
            .select("user_id, profiles (display_name)")
            .eq("code", code)
            .gt("expires_at", utcnow().isoformat())
            .limit(1)
            .execute()
        )
    except Exception as e:
        raise_backend_error(e, "look up buddy code")

    if not res.data:
        raise BuddyCodeError()

    buddy_id = res.data[0]["user_id"]
    buddy_name = (res.data[0].get("profiles") or {}).get("display_name") or "Unknown"
    if buddy_id == user_id:
        raise BuddyCodeError("You cannot connect with yourself")

    user_a_id, user_b_id = pair(user_id, buddy_id)
    try:
        existing = (
            sb.table(Tables.BUDDIES)
            .select("id")
            .eq("user_a_id", user_a_id)
            .eq("user_b_id", user_b_id)
            .limit(1)
            .execute()
        )
        if existing.data:
            return BuddyConnection(buddy_id, buddy_name, already_connected=True)

        sb.table(Tables.BUDDIES).insert({
            "user_a_id": user_a_id,
            "user_b_id": user_b_id,
            "connected_at_event_id": event_id,
        }).execute()
        sb.table(Tables.BUDDY_SESSIONS).upsert([
            {"event_id": event_id, "user_id": user_id, "buddy_id": buddy_id},
            {"event_id": event_id, "user_id": buddy_id, "buddy_id": user_id},
        ]).execute()
    except Exception as e:
        raise_backend_error(e, "connect with buddy")

    logger.info(f"Connected buddies {user_a_id} and {user_b_id} at event {event_id}")
    return BuddyConnection(buddy_id, buddy_name)


def get_user_buddies(sb: Client, user_id: str) -> List[Buddy]:
    """Every buddy of a user, with names and the event where they met."""
    try:
        rows = []
        for column in ("user_a_id", "user_b_id"):
            res = sb.table(Tables.BUDDIES).select("*").eq(column, user_id).execute()
            rows.extend(res.data or [])

        buddy_ids = [r["user_b_id"] if r["user_a_id"] == user_id else r["user_a_id"] for r in rows]
        event_ids = sorted({r["connected_at_event_id"] for r in rows if r.get("connected_at_event_id")})

        names: Dict[str, str] = {}
        if buddy_ids:
            profiles = sb.table(Tables.PROFILES).select("id, display_name").in_("id", buddy_ids).execute()
            names = {p["id"]: p.get("display_name") for p in profiles.data or []}

        event_names: Dict[str, str] = {}
        if event_ids:
            events = sb.table(Tables.EVENTS).select("id, event_name").in_("id", event_ids).execute()
            event_names = {e["id"]: e.get("event_name") for e in events.data or []}
    except Exception as e:
        raise_backend_error(e, "load buddies")

    return [
        Buddy(
            buddy_id=buddy_id,
            buddy_name=names.get(buddy_id) or "Unknown",
            is_permanent=bool(row.get("is_permanent")),
            connected_at_event_id=row.get("connected_at_event_id"),
            connected_at_event_name=event_names.get(row.get("connected_at_event_id")),
            created_at=row.get("created_at"),
        )
        for buddy_id, row in zip(buddy_ids, rows)
    ]


def make_buddy_permanent(sb: Client, user_id: str, buddy_id: str) -> None:
    """Keep a buddy across future events."""
    user_a_id, user_b_id = pair(user_id, buddy_id)
    try:
        (
            sb.table(Tables.BUDDIES)
            .update({"is_permanent": True})
            .eq("user_a_id", user_a_id)
            .eq("user_b_id", user_b_id)
            .execute()
        )
    except Exception as e:
        raise_backend_error(e, "update buddy")


def set_event_buddy_inclusion(sb: Client, event_id: str, user_id: str, buddy_id: str, included: bool) -> None:
    """Include or exclude a past buddy from comparisons at an event."""
    try:
        sb.table(Tables.BUDDY_SESSIONS).upsert({
            "event_id": event_id,
            "user_id": user_id,
            "buddy_id": buddy_id,
            "included_at_event": included,
        }).execute()
    except Exception as e:
        raise_backend_error(e, "update buddy")


def get_past_buddies_for_event(sb: Client, user_id: str, event_id: str) -> List[Dict[str, Any]]:
    """
    Buddies a user could bring into a new event.

    Each entry carries whether the buddy is included: the explicit choice at
    this event when one exists, otherwise whether the buddy is permanent.
    """
    buddies = get_user_buddies(sb, user_id)
    try:
        res = (
            sb.table(Tables.BUDDY_SESSIONS)
            .select("buddy_id, included_at_event")
            .eq("event_id", event_id)
            .eq("user_id", user_id)
            .execute()
        )
    except Exception as e:
        raise_backend_error(e, "load buddy sessions")

    choices = {s["buddy_id"]: s.get("included_at_event") for s in res.data or []}
    return [
        {
            "buddy": buddy,
            "included": choices[buddy.buddy_id]
            if choices.get(buddy.buddy_id) is not None else buddy.is_permanent,
        }
        for buddy in buddies
    ]


def get_buddy_comparison(
    sb: Client,
    user_id: str,
    buddy: Buddy,
    event_wines: Sequence[Mapping[str, Any]]
) -> BuddyComparison:
    """Compare a user with one buddy over an event's wines."""
    wines_by_id = {w["id"]: w for w in event_wines}
    ratings = list_ratings_for_wines(sb, list(wines_by_id))
    user_ratings = [r for r in ratings if r.get("user_id") == user_id]
    buddy_ratings = [r for r in ratings if r.get("user_id") == buddy.buddy_id]
    return compare_ratings(user_ratings, buddy_ratings, buddy.buddy_id, buddy.buddy_name, wines_by_id)
