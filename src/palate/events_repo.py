"""Supabase repository helpers for tasting events and their locations."""

import logging
from typing import Any, Dict, List, Optional

from supabase import Client

from palate.constants import AccessType, Tables
from palate.error_handling import (
    DuplicateEventCodeError,
    EventInactiveError,
    EventNotFoundError,
    is_unique_violation,
    raise_backend_error,
)
from palate.schema import EventForm
from palate.utils import blank_to_none, normalize_code

logger = logging.getLogger(__name__)


def get_event_by_code(sb: Client, event_code: str, require_active: bool = True) -> Dict[str, Any]:
    """
    Look up an event by its attendee code.

    Args:
        sb: Supabase client
        event_code: Code as typed by the attendee (case and padding ignored)
        require_active: Reject inactive or deleted events

    Raises:
        EventNotFoundError: No event has this code
        EventInactiveError: The event is inactive or deleted
    """
    code = normalize_code(event_code)
    if not code:
        raise EventNotFoundError()

    try:
        res = sb.table(Tables.EVENTS).select("*").eq("event_code", code).limit(1).execute()
    except Exception as e:
        raise_backend_error(e, "look up event")

    rows = res.data or []
    if not rows:
        raise EventNotFoundError()

    event = rows[0]
    if require_active and (not event.get("is_active") or event.get("is_deleted")):
        raise EventInactiveError()
    return event


def get_event(sb: Client, event_id: str) -> Dict[str, Any]:
    """Load an event by id or raise EventNotFoundError."""
    try:
        res = sb.table(Tables.EVENTS).select("*").eq("id", event_id).limit(1).execute()
    except Exception as e:
        raise_backend_error(e, "load event")

    rows = res.data or []
    if not rows:
        raise EventNotFoundError()
    return rows[0]


def create_event(
    sb: Client,
    form: EventForm,
    admin_id: str,
    organization_id: Optional[str] = None
) -> Dict[str, Any]:
    """
    Create an event owned by an admin.

    Raises:
        DuplicateEventCodeError: The code is already taken
    """
    row = form.model_dump(mode="json")
    row = {key: blank_to_none(value) for key, value in row.items()}
    row.update({
        "admin_id": admin_id,
        "is_active": True,
        "is_deleted": False,
        "is_closed": False,
        "access_type": (AccessType.EMAIL_ONLY if form.is_booth_mode else AccessType.EVENT_CODE).value,
    })
    if organization_id:
        row["organization_id"] = organization_id

    try:
        res = sb.table(Tables.EVENTS).insert(row).execute()
    except Exception as e:
        if is_unique_violation(e):
            raise DuplicateEventCodeError() from e
        raise_backend_error(e, "create event")

    data = res.data or []
    logger.info(f"Created event {form.event_code} for admin {admin_id}")
    return data[0] if data else row


def list_admin_events(sb: Client, admin_id: Optional[str] = None) -> List[Dict[str, Any]]:
    """
    Non-deleted events, newest first.

    Args:
        sb: Supabase client
        admin_id: Only events owned by this admin; all events when None
    """
    try:
        query = sb.table(Tables.EVENTS).select("*").eq("is_deleted", False)
        if admin_id:
            query = query.eq("admin_id", admin_id)
        res = query.order("event_date", desc=True).execute()
    except Exception as e:
        raise_backend_error(e, "load events")
    return res.data or []


def update_event(sb: Client, event_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
    """Apply a partial update to an event."""
    if "event_code" in changes:
        changes = {**changes, "event_code": normalize_code(changes["event_code"])}

    try:
        res = sb.table(Tables.EVENTS).update(changes).eq("id", event_id).execute()
    except Exception as e:
        if is_unique_violation(e):
            raise DuplicateEventCodeError() from e
        raise_backend_error(e, "update event")

    data = res.data or []
    return data[0] if data else {}


def soft_delete_event(sb: Client, event_id: str) -> None:
    """Hide an event without losing its ratings."""
    update_event(sb, event_id, {"is_deleted": True, "is_active": False})
    logger.info(f"Soft-deleted event {event_id}")


def close_event(sb: Client, event_id: str) -> None:
    """Close an event so results and buddy comparisons become visible."""
    update_event(sb, event_id, {"is_closed": True})


def add_location(
    sb: Client,
    event_id: str,
    location_name: str,
    location_address: Optional[str] = None,
    location_order: Optional[int] = None
) -> Dict[str, Any]:
    """Add a stop to a crawl, appended after the existing stops by default."""
    if location_order is None:
        location_order = len(list_locations(sb, event_id)) + 1

    row = {
        "event_id": event_id,
        "location_name": location_name.strip(),
        "location_address": blank_to_none(location_address),
        "location_order": location_order,
    }
    try:
        res = sb.table(Tables.LOCATIONS).insert(row).execute()
    except Exception as e:
        raise_backend_error(e, "add location")

    data = res.data or []
    return data[0] if data else row


def list_locations(sb: Client, event_id: str) -> List[Dict[str, Any]]:
    """Stops of an event in visiting order."""
    try:
        res = (
            sb.table(Tables.LOCATIONS)
            .select("*")
            .eq("event_id", event_id)
            .order("location_order")
            .execute()
        )
    except Exception as e:
        raise_backend_error(e, "load locations")
    return res.data or []


def count_events(sb: Client) -> int:
    """Number of non-deleted events."""
    try:
        res = sb.table(Tables.EVENTS).select("id", count="exact").eq("is_deleted", False).execute()
    except Exception as e:
        raise_backend_error(e, "count events")
    return res.count or 0
