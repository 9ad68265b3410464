"""
Curator management of staff accounts.

Admins run events; curators additionally review wines and manage staff.
Access is granted by email: an existing profile is promoted, otherwise a
permanent profile is created that the staff member's password account
resolves to when they first sign in.
"""

import logging
import uuid
from typing import Any, Dict, List

from supabase import Client

from palate.auth import find_profile_by_email
from palate.constants import Tables
from palate.error_handling import DataValidationError, raise_backend_error
from palate.utils import normalize_email

logger = logging.getLogger(__name__)


def list_admins(sb: Client) -> List[Dict[str, Any]]:
    """Admin profiles with their live event counts, most active first."""
    try:
        admins = (
            sb.table(Tables.PROFILES)
            .select("id, display_name, eventbrite_email, email, is_admin, is_curator, created_at")
            .eq("is_admin", True)
            .execute()
        ).data or []
        events = (
            sb.table(Tables.EVENTS)
            .select("id, admin_id")
            .eq("is_deleted", False)
            .execute()
        ).data or []
    except Exception as e:
        raise_backend_error(e, "load admins")

    counts: Dict[str, int] = {}
    for event in events:
        counts[event.get("admin_id")] = counts.get(event.get("admin_id"), 0) + 1
    for admin in admins:
        admin["event_count"] = counts.get(admin["id"], 0)
        admin["is_curator"] = bool(admin.get("is_curator"))
    return sorted(admins, key=lambda a: -a["event_count"])


def grant_admin(sb: Client, display_name: str, email: str) -> Dict[str, Any]:
    """
    Give a person admin access by email.

    Returns:
        The promoted or newly created profile

    Raises:
        DataValidationError: Missing name or email, or already an admin
    """
    display_name = (display_name or "").strip()
    email = normalize_email(email)
    if not display_name or not email:
        raise DataValidationError("Please fill in all fields")

    existing = find_profile_by_email(sb, email)
    if existing and existing.get("is_admin"):
        raise DataValidationError("This user is already an admin")

    try:
        if existing:
            # Staff accounts never expire
            changes = {"is_admin": True, "display_name": display_name,
                       "is_temp_account": False, "account_expires_at": None}
            sb.table(Tables.PROFILES).update(changes).eq("id", existing["id"]).execute()
            profile = {**existing, **changes}
        else:
            profile = {
                "id": str(uuid.uuid4()),
                "display_name": display_name,
                "eventbrite_email": email,
                "is_admin": True,
                "is_curator": False,
                "is_temp_account": False,
            }
            sb.table(Tables.PROFILES).insert(profile).execute()
    except Exception as e:
        raise_backend_error(e, "grant admin access")

    logger.info(f"Granted admin access to {profile['id']}")
    return profile


def revoke_admin(sb: Client, profile_id: str, acting_id: str) -> None:
    """
    Remove admin and curator access.

    Raises:
        DataValidationError: A curator tried to revoke their own access
    """
    if profile_id == acting_id:
        raise DataValidationError("You cannot remove your own access")
    try:
        sb.table(Tables.PROFILES).update({"is_admin": False, "is_curator": False}).eq("id", profile_id).execute()
    except Exception as e:
        raise_backend_error(e, "remove admin access")
    logger.info(f"Revoked staff access from {profile_id}")


def set_curator(sb: Client, profile_id: str, enabled: bool, acting_id: str) -> None:
    if profile_id == acting_id and not enabled:
        raise DataValidationError("You cannot remove your own access")
    try:
        sb.table(Tables.PROFILES).update({"is_curator": bool(enabled)}).eq("id", profile_id).execute()
    except Exception as e:
        raise_backend_error(e, "update permissions")
    logger.info(f"Curator access {'granted to' if enabled else 'removed from'} {profile_id}")
