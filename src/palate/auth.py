"""
Identity for Palate Collectif.

Attendees need no account: joining with an event code (or an email at a
booth) creates a temporary profile whose id is cached in the Streamlit
session. A guest may later keep their ratings by converting to a password
account. Admins and curators sign in with a backend password account and
are re-checked against their profile flags on every gated page.

`state` is any mutable mapping; pages pass `st.session_state`.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, MutableMapping, Optional, Tuple

from supabase import Client

from palate import config
from palate.constants import Role, SessionKeys, Tables
from palate.error_handling import AuthorizationError, DataValidationError, raise_backend_error
from palate.events_repo import get_event_by_code
from palate.schema import Profile
from palate.supabase_session import sign_in_with_password, sign_up
from palate.supabase_session import sign_out as backend_sign_out
from palate.utils import blank_to_none, generate_profile_id, normalize_email, utcnow

logger = logging.getLogger(__name__)

ROLE_FLAGS = {
    Role.ADMIN: "is_admin",
    Role.CURATOR: "is_curator",
}

# Rows owned by an attendee that follow them to a permanent account
MIGRATED_TABLES = [Tables.RATINGS, Tables.USER_WINES, Tables.BUDDY_CODES]


def _create_temp_profile(
    sb: Client,
    prefix: str,
    display_name: str,
    email: Optional[str],
    days: int
) -> Dict[str, Any]:
    row = {
        "id": generate_profile_id(prefix),
        "display_name": display_name,
        "eventbrite_email": email,
        "is_temp_account": True,
        "account_expires_at": (utcnow() + timedelta(days=days)).isoformat(),
        "is_admin": False,
    }
    try:
        sb.table(Tables.PROFILES).insert(row).execute()
    except Exception as e:
        raise_backend_error(e, "create profile")
    logger.info(f"Created temporary profile {row['id']} (expires in {days} days)")
    return row


def load_profile(sb: Client, profile_id: str) -> Optional[Dict[str, Any]]:
    """Profile row by id, or None."""
    try:
        res = sb.table(Tables.PROFILES).select("*").eq("id", profile_id).limit(1).execute()
    except Exception as e:
        raise_backend_error(e, "load profile")
    rows = res.data or []
    return rows[0] if rows else None


def find_profile_by_email(sb: Client, email: str) -> Optional[Dict[str, Any]]:
    """Profile whose ticketing or account email matches, or None."""
    email = normalize_email(email)
    if not email:
        return None
    try:
        for column in ("eventbrite_email", "email"):
            res = sb.table(Tables.PROFILES).select("*").eq(column, email).limit(1).execute()
            if res.data:
                return res.data[0]
    except Exception as e:
        raise_backend_error(e, "look up profile")
    return None


def load_profiles(sb: Client, profile_ids: Iterable[str]) -> Dict[str, Dict[str, Any]]:
    """Profile id -> name and ticketing email, for reports."""
    profile_ids = sorted({pid for pid in profile_ids if pid})
    if not profile_ids:
        return {}
    try:
        res = (
            sb.table(Tables.PROFILES)
            .select("id, display_name, eventbrite_email")
            .in_("id", profile_ids)
            .execute()
        )
    except Exception as e:
        raise_backend_error(e, "load profiles")
    return {row["id"]: row for row in res.data or []}


def join_event(
    sb: Client,
    state: MutableMapping[str, Any],
    event_code: str,
    display_name: Optional[str] = None,
    email: Optional[str] = None
) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """
    Join an event with its code as a temporary attendee.

    An attendee already signed in to a permanent account joins as themselves.

    Args:
        sb: Supabase client
        state: Session state receiving the attendee and event ids
        event_code: Code as typed (case and padding ignored)
        display_name: Optional name, "Guest" when blank
        email: Optional ticketing email

    Returns:
        (profile row, event row)

    Raises:
        EventNotFoundError: Unknown code
        EventInactiveError: The event no longer accepts attendees
    """
    event = get_event_by_code(sb, event_code)
    signed_in = state.get(SessionKeys.USER) and load_profile(sb, state[SessionKeys.USER])
    if signed_in:
        state[SessionKeys.CURRENT_EVENT] = event["id"]
        return signed_in, event

    profile = _create_temp_profile(
        sb,
        prefix="temp",
        display_name=(display_name or "").strip() or "Guest",
        email=blank_to_none((email or "").strip()),
        days=config.TEMP_ACCOUNT_DAYS,
    )

    state[SessionKeys.TEMP_USER] = profile["id"]
    state[SessionKeys.CURRENT_EVENT] = event["id"]
    return profile, event


def booth_sign_in(
    sb: Client,
    state: MutableMapping[str, Any],
    event: Dict[str, Any],
    email: str
) -> str:
    """
    Identify a booth visitor by email, reusing their profile when it exists.

    Returns:
        Profile id

    Raises:
        DataValidationError: Email is blank
    """
    email = normalize_email(email)
    if not email:
        raise DataValidationError("Please enter your email")

    existing = find_profile_by_email(sb, email)
    if existing:
        profile_id = existing["id"]
    else:
        profile_id = _create_temp_profile(
            sb,
            prefix="booth",
            display_name=email.split("@")[0],
            email=email,
            days=config.BOOTH_ACCOUNT_DAYS,
        )["id"]

    state[SessionKeys.BOOTH_USER] = profile_id
    state[SessionKeys.BOOTH_EMAIL] = email
    state[SessionKeys.BOOTH_EVENT] = event["id"]
    return profile_id


def sign_in_staff(
    sb: Client,
    state: MutableMapping[str, Any],
    email: str,
    password: str,
    role: Role
) -> Profile:
    """
    Password sign-in for admins and curators.

    The profile is the one keyed by the auth user id, or else the one a
    curator granted staff access to by email.

    Raises:
        AuthorizationError: Bad credentials or the profile lacks the role
    """
    user_id = sign_in_with_password(sb, normalize_email(email), password)
    row = load_profile(sb, user_id) or find_profile_by_email(sb, email)
    flag = ROLE_FLAGS[Role(role)]
    if not row or not row.get(flag):
        backend_sign_out(sb)
        raise AuthorizationError(f"This account does not have {Role(role).value} access")

    state[SessionKeys.for_role(Role(role))] = row["id"]
    logger.info(f"{Role(role).value.title()} {row['id']} signed in")
    return Profile.model_validate(row)


def sign_in_attendee(
    sb: Client,
    state: MutableMapping[str, Any],
    email: str,
    password: str
) -> Profile:
    """
    Password sign-in for an attendee who kept their account.

    Raises:
        AuthorizationError: Bad credentials or no profile for the account
    """
    user_id = sign_in_with_password(sb, normalize_email(email), password)
    row = load_profile(sb, user_id)
    if not row:
        backend_sign_out(sb)
        raise AuthorizationError("No profile found for this account")

    state[SessionKeys.USER] = row["id"]
    logger.info(f"Attendee {row['id']} signed in")
    return Profile.model_validate(row)


def current_attendee_id(state: MutableMapping[str, Any]) -> Optional[str]:
    """Attendee id from a converted account, an event-code join or a booth sign-in."""
    return (
        state.get(SessionKeys.USER)
        or state.get(SessionKeys.TEMP_USER)
        or state.get(SessionKeys.BOOTH_USER)
    )


def require_role(
    sb: Client,
    state: MutableMapping[str, Any],
    role: Role,
    now: Optional[datetime] = None
) -> Profile:
    """
    Re-read the cached identity and check it may see a gated page.

    Raises:
        AuthorizationError: No cached id, unknown profile, missing flag or
                            expired temporary account
    """
    role = Role(role)
    if role == Role.ATTENDEE:
        profile_id = current_attendee_id(state)
    else:
        profile_id = state.get(SessionKeys.for_role(role))
    if not profile_id:
        raise AuthorizationError()

    row = load_profile(sb, profile_id)
    if not row:
        raise AuthorizationError()

    profile = Profile.model_validate(row)
    if role in ROLE_FLAGS and not getattr(profile, ROLE_FLAGS[role]):
        raise AuthorizationError()
    if profile.is_expired(now or utcnow()):
        raise AuthorizationError("Your temporary account has expired. Join an event to continue.")
    return profile


def convert_account(
    sb: Client,
    state: MutableMapping[str, Any],
    profile: Profile,
    email: str,
    password: str,
    display_name: Optional[str] = None
) -> Dict[str, Any]:
    """
    Turn a temporary attendee into a permanent account.

    A backend auth account is created and a permanent profile is keyed by
    its id. The attendee's ratings and collection move to the new profile;
    the temporary profile is left to expire.

    Returns:
        The new profile row

    Raises:
        DataValidationError: Already permanent, bad email or short password
    """
    if not profile.is_temp_account:
        raise DataValidationError("This account is already permanent")
    email = normalize_email(email)
    if "@" not in email:
        raise DataValidationError("Please enter a valid email")
    if len(password or "") < config.MIN_PASSWORD_LENGTH:
        raise DataValidationError(f"Password must be at least {config.MIN_PASSWORD_LENGTH} characters")

    name = (display_name or "").strip() or email.split("@")[0]
    user_id = sign_up(sb, email, password, name)

    row = {
        "id": user_id,
        "display_name": name,
        "email": email,
        "eventbrite_email": profile.eventbrite_email,
        "is_temp_account": False,
        "account_expires_at": None,
        "converted_from": profile.id,
        "converted_at": utcnow().isoformat(),
    }
    try:
        sb.table(Tables.PROFILES).insert(row).execute()
        for table in MIGRATED_TABLES:
            sb.table(table).update({"user_id": user_id}).eq("user_id", profile.id).execute()
    except Exception as e:
        raise_backend_error(e, "convert account")

    for key in (SessionKeys.TEMP_USER, SessionKeys.BOOTH_USER):
        if state.get(key) == profile.id:
            state.pop(key)
    state[SessionKeys.USER] = user_id
    logger.info(f"Converted temporary profile {profile.id} to account {user_id}")
    return row


def sign_out(sb: Client, state: MutableMapping[str, Any], role: Role) -> None:
    """Forget the cached identity for a role."""
    role = Role(role)
    if role == Role.ATTENDEE:
        keys = [SessionKeys.USER, SessionKeys.TEMP_USER, SessionKeys.CURRENT_EVENT,
                SessionKeys.BOOTH_USER, SessionKeys.BOOTH_EMAIL, SessionKeys.BOOTH_EVENT]
    else:
        keys = [SessionKeys.for_role(role)]
        backend_sign_out(sb)

    for key in keys:
        state.pop(key, None)
