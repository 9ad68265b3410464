"""Supabase repository helpers for organizations (admin groups)."""

import logging
from typing import Any, Dict, List, Optional

from supabase import Client

from palate.constants import OrgRole, Tables
from palate.error_handling import DataValidationError, is_unique_violation, raise_backend_error
from palate.utils import blank_to_none

logger = logging.getLogger(__name__)


def create_organization(
    sb: Client,
    name: str,
    created_by: str,
    description: Optional[str] = None
) -> Dict[str, Any]:
    """Create a group; its creator becomes the owner."""
    name = (name or "").strip()
    if not name:
        raise DataValidationError("Organization name is required")

    row = {"name": name, "description": blank_to_none(description), "created_by": created_by, "is_active": True}
    try:
        res = sb.table(Tables.ORGANIZATIONS).insert(row).execute()
        organization = (res.data or [row])[0]
    except Exception as e:
        raise_backend_error(e, "create organization")

    if organization.get("id"):
        add_member(sb, organization["id"], created_by, OrgRole.OWNER, invited_by=created_by)
    logger.info(f"Created organization '{name}'")
    return organization


def list_organizations(sb: Client) -> List[Dict[str, Any]]:
    """Organizations with member and live event counts."""
    try:
        organizations = sb.table(Tables.ORGANIZATIONS).select("*").order("name").execute().data or []
        for org in organizations:
            members = (
                sb.table(Tables.ORG_MEMBERS)
                .select("id", count="exact")
                .eq("organization_id", org["id"])
                .execute()
            )
            events = (
                sb.table(Tables.EVENTS)
                .select("id", count="exact")
                .eq("organization_id", org["id"])
                .eq("is_deleted", False)
                .execute()
            )
            org["member_count"] = members.count or 0
            org["event_count"] = events.count or 0
    except Exception as e:
        raise_backend_error(e, "load organizations")
    return organizations


def update_organization(sb: Client, organization_id: str, name: str, description: Optional[str] = None) -> None:
    """Rename a group or change its description."""
    name = (name or "").strip()
    if not name:
        raise DataValidationError("Organization name is required")

    changes = {"name": name, "description": blank_to_none((description or "").strip())}
    try:
        sb.table(Tables.ORGANIZATIONS).update(changes).eq("id", organization_id).execute()
    except Exception as e:
        raise_backend_error(e, "update organization")


def delete_organization(sb: Client, organization_id: str) -> None:
    """Delete a group and its memberships; its events stay with their admins."""
    try:
        sb.table(Tables.ORG_MEMBERS).delete().eq("organization_id", organization_id).execute()
        sb.table(Tables.ORGANIZATIONS).delete().eq("id", organization_id).execute()
    except Exception as e:
        raise_backend_error(e, "delete organization")
    logger.info(f"Deleted organization {organization_id}")


def add_member(
    sb: Client,
    organization_id: str,
    profile_id: str,
    role: OrgRole = OrgRole.MEMBER,
    invited_by: Optional[str] = None
) -> Dict[str, Any]:
    """
    Add a profile to an organization.

    Raises:
        DataValidationError: The profile is already a member
    """
    row = {
        "organization_id": organization_id,
        "profile_id": profile_id,
        "role": OrgRole(role).value,
        "invited_by": invited_by,
    }
    try:
        res = sb.table(Tables.ORG_MEMBERS).insert(row).execute()
    except Exception as e:
        if is_unique_violation(e):
            raise DataValidationError("This admin is already a member") from e
        raise_backend_error(e, "add member")
    return (res.data or [row])[0]


def update_member_role(sb: Client, member_id: str, role: OrgRole) -> None:
    try:
        sb.table(Tables.ORG_MEMBERS).update({"role": OrgRole(role).value}).eq("id", member_id).execute()
    except Exception as e:
        raise_backend_error(e, "update role")


def remove_member(sb: Client, member_id: str) -> None:
    try:
        sb.table(Tables.ORG_MEMBERS).delete().eq("id", member_id).execute()
    except Exception as e:
        raise_backend_error(e, "remove member")


def list_members(sb: Client, organization_id: str) -> List[Dict[str, Any]]:
    """Members with their profile, owners first."""
    try:
        res = (
            sb.table(Tables.ORG_MEMBERS)
            .select("id, profile_id, role, invited_by, profiles (display_name, eventbrite_email)")
            .eq("organization_id", organization_id)
            .order("role")
            .execute()
        )
    except Exception as e:
        raise_backend_error(e, "load members")

    role_order = {role.value: index for index, role in enumerate(OrgRole)}
    members = res.data or []
    return sorted(members, key=lambda m: role_order.get(m.get("role"), len(role_order)))


def list_admin_candidates(sb: Client, organization_id: str) -> List[Dict[str, Any]]:
    """Admin profiles not yet in the organization."""
    try:
        admins = (
            sb.table(Tables.PROFILES)
            .select("id, display_name, eventbrite_email")
            .eq("is_admin", True)
            .execute()
        ).data or []
        members = (
            sb.table(Tables.ORG_MEMBERS)
            .select("profile_id")
            .eq("organization_id", organization_id)
            .execute()
        ).data or []
    except Exception as e:
        raise_backend_error(e, "load admins")

    member_ids = {m["profile_id"] for m in members}
    return [a for a in admins if a["id"] not in member_ids]
