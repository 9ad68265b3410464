"""
Tests for attendee joins, booth sign-in and staff sign-in.
"""

from datetime import datetime, timedelta, timezone

import pytest
from palate import auth
from palate.constants import Role, SessionKeys, Tables
from palate.error_handling import AuthorizationError, DataValidationError, EventInactiveError, EventNotFoundError
from palate.schema import Profile


@pytest.fixture
def sb(make_sb):
    return make_sb(
        {
            Tables.EVENTS: [
                {"id": "e1", "event_code": "SPRING", "event_name": "Spring Tasting",
                 "is_active": True, "is_deleted": False},
                {"id": "e2", "event_code": "OLD24", "event_name": "Old Tasting",
                 "is_active": False, "is_deleted": False},
            ],
            Tables.PROFILES: [
                {"id": "admin-1", "display_name": "Ana", "is_admin": True, "is_curator": False},
                {"id": "curator-1", "display_name": "Cy", "is_admin": False, "is_curator": True},
                {"id": "booth_1", "display_name": "vic", "eventbrite_email": "vic@example.com",
                 "is_temp_account": True},
            ],
        },
        accounts={
            ("ana@example.com", "secret"): "admin-1",
            ("cy@example.com", "secret"): "curator-1",
        },
    )


class TestJoinEvent:
    """Test joining with an event code."""

    def test_join_creates_temp_profile(self, sb):
        state = {}
        profile, event = auth.join_event(sb, state, " spring ", display_name="  Jo ")
        assert event["id"] == "e1"
        assert profile["id"].startswith("temp_")
        assert profile["display_name"] == "Jo"
        assert profile["is_temp_account"] is True
        assert state[SessionKeys.TEMP_USER] == profile["id"]
        assert state[SessionKeys.CURRENT_EVENT] == "e1"

    def test_guest_name_and_seven_day_expiry(self, sb):
        profile, _ = auth.join_event(sb, {}, "SPRING")
        assert profile["display_name"] == "Guest"
        expires = datetime.fromisoformat(profile["account_expires_at"])
        remaining = expires - datetime.now(timezone.utc)
        assert timedelta(days=6, hours=23) < remaining <= timedelta(days=7)

    def test_unknown_code(self, sb):
        with pytest.raises(EventNotFoundError):
            auth.join_event(sb, {}, "NOPE")

    def test_inactive_event(self, sb):
        state = {}
        with pytest.raises(EventInactiveError):
            auth.join_event(sb, state, "OLD24")
        assert state == {}


class TestBoothSignIn:
    """Test email-only identification."""

    def test_existing_profile_reused(self, sb):
        state = {}
        profile_id = auth.booth_sign_in(sb, state, {"id": "e1"}, " VIC@example.com ")
        assert profile_id == "booth_1"
        assert state[SessionKeys.BOOTH_EMAIL] == "vic@example.com"
        assert state[SessionKeys.BOOTH_EVENT] == "e1"

    def test_new_visitor(self, sb):
        state = {}
        profile_id = auth.booth_sign_in(sb, state, {"id": "e1"}, "new@example.com")
        assert profile_id.startswith("booth_")
        created = [p for p in sb.rows(Tables.PROFILES) if p["id"] == profile_id][0]
        assert created["display_name"] == "new"

    def test_blank_email(self, sb):
        with pytest.raises(DataValidationError):
            auth.booth_sign_in(sb, {}, {"id": "e1"}, "   ")


class TestStaffSignIn:
    """Test password sign-in and role checks."""

    def test_admin_sign_in(self, sb):
        state = {}
        profile = auth.sign_in_staff(sb, state, "ana@example.com", "secret", Role.ADMIN)
        assert profile.id == "admin-1"
        assert state[SessionKeys.ADMIN_USER] == "admin-1"

    def test_wrong_password(self, sb):
        with pytest.raises(AuthorizationError, match="Invalid email or password"):
            auth.sign_in_staff(sb, {}, "ana@example.com", "wrong", Role.ADMIN)

    def test_granted_admin_resolved_by_email(self, sb):
        """A curator granted access by email before the password account existed."""
        sb.tables[Tables.PROFILES].append(
            {"id": "granted-1", "display_name": "Gil", "eventbrite_email": "gil@example.com", "is_admin": True}
        )
        sb.auth.accounts[("gil@example.com", "secret")] = "auth-gil"
        state = {}
        profile = auth.sign_in_staff(sb, state, "Gil@Example.com", "secret", Role.ADMIN)
        assert profile.id == "granted-1"
        assert state[SessionKeys.ADMIN_USER] == "granted-1"

    def test_missing_role_signs_out(self, sb):
        """A curator cannot use the admin pages."""
        state = {}
        with pytest.raises(AuthorizationError):
            auth.sign_in_staff(sb, state, "cy@example.com", "secret", Role.ADMIN)
        assert sb.auth.signed_out is True
        assert SessionKeys.ADMIN_USER not in state


class TestRequireRole:
    """Test gated-page checks."""

    def test_no_identity(self, sb):
        with pytest.raises(AuthorizationError):
            auth.require_role(sb, {}, Role.ATTENDEE)

    def test_attendee_from_booth(self, sb):
        state = {SessionKeys.BOOTH_USER: "booth_1"}
        assert auth.require_role(sb, state, Role.ATTENDEE).id == "booth_1"

    def test_curator_flag_required(self, sb):
        state = {SessionKeys.CURATOR_USER: "admin-1"}
        with pytest.raises(AuthorizationError):
            auth.require_role(sb, state, Role.CURATOR)

    def test_expired_temp_account(self, sb):
        sb.tables[Tables.PROFILES].append({
            "id": "temp_1", "is_temp_account": True,
            "account_expires_at": "2025-01-01T00:00:00+00:00",
        })
        state = {SessionKeys.TEMP_USER: "temp_1"}
        with pytest.raises(AuthorizationError, match="expired"):
            auth.require_role(sb, state, Role.ATTENDEE, now=datetime(2025, 1, 8, tzinfo=timezone.utc))

    def test_sign_out_attendee_clears_keys(self, sb):
        state = {SessionKeys.TEMP_USER: "t", SessionKeys.CURRENT_EVENT: "e1", "other": 1}
        auth.sign_out(sb, state, Role.ATTENDEE)
        assert state == {"other": 1}
        assert sb.auth.signed_out is False

    def test_sign_out_staff(self, sb):
        state = {SessionKeys.ADMIN_USER: "admin-1"}
        auth.sign_out(sb, state, Role.ADMIN)
        assert state == {}
        assert sb.auth.signed_out is True


class TestLoadProfiles:
    """Test the bulk profile lookup used by reports."""

    def test_known_ids_only(self, sb):
        profiles = auth.load_profiles(sb, ["admin-1", None, "admin-1", "missing"])
        assert list(profiles) == ["admin-1"]
        assert profiles["admin-1"]["display_name"] == "Ana"

    def test_no_ids_no_query(self, sb):
        assert auth.load_profiles(sb, []) == {}
        assert sb.calls == []


class TestConvertAccount:
    """Test turning a temporary attendee into a permanent account."""

    @pytest.fixture
    def temp_profile(self, sb):
        row = {"id": "temp_1", "display_name": "Guest", "eventbrite_email": "jo@tickets.example",
               "is_temp_account": True, "account_expires_at": "2099-01-01T00:00:00+00:00"}
        sb.tables[Tables.PROFILES].append(row)
        sb.tables[Tables.RATINGS] = [
            {"id": "r1", "user_id": "temp_1", "event_wine_id": "w1", "rating": 4},
            {"id": "r2", "user_id": "other", "event_wine_id": "w1", "rating": 2},
        ]
        sb.tables[Tables.USER_WINES] = [{"id": "uw1", "user_id": "temp_1", "wine_name": "Barolo"}]
        return Profile.model_validate(row)

    def test_ratings_and_collection_follow_the_account(self, sb, temp_profile):
        state = {SessionKeys.TEMP_USER: "temp_1", SessionKeys.CURRENT_EVENT: "e1"}
        row = auth.convert_account(sb, state, temp_profile, " Jo@Example.com ", "secret1", " Jo ")

        assert row["id"] == "auth-3"
        assert row["email"] == "jo@example.com"
        assert row["display_name"] == "Jo"
        assert row["is_temp_account"] is False
        assert row["converted_from"] == "temp_1"
        assert [r["user_id"] for r in sb.rows(Tables.RATINGS)] == ["auth-3", "other"]
        assert sb.rows(Tables.USER_WINES)[0]["user_id"] == "auth-3"

        assert SessionKeys.TEMP_USER not in state
        assert state[SessionKeys.CURRENT_EVENT] == "e1"
        assert auth.require_role(sb, state, Role.ATTENDEE).id == "auth-3"

    def test_display_name_defaults_to_email(self, sb, temp_profile):
        row = auth.convert_account(sb, {}, temp_profile, "jo@example.com", "secret1")
        assert row["display_name"] == "jo"

    def test_short_password(self, sb, temp_profile):
        with pytest.raises(DataValidationError, match="at least 6"):
            auth.convert_account(sb, {}, temp_profile, "jo@example.com", "12345")

    def test_invalid_email(self, sb, temp_profile):
        with pytest.raises(DataValidationError, match="valid email"):
            auth.convert_account(sb, {}, temp_profile, "jo", "secret1")

    def test_email_already_registered(self, sb, temp_profile):
        with pytest.raises(DataValidationError, match="already registered"):
            auth.convert_account(sb, {}, temp_profile, "ana@example.com", "secret1")
        assert sb.rows(Tables.RATINGS)[0]["user_id"] == "temp_1"

    def test_permanent_account_rejected(self, sb):
        with pytest.raises(DataValidationError, match="already permanent"):
            auth.convert_account(sb, {}, Profile(id="admin-1"), "ana@example.com", "secret1")

    def test_sign_back_in_and_join_as_self(self, sb, temp_profile):
        auth.convert_account(sb, {}, temp_profile, "jo@example.com", "secret1")

        state = {}
        assert auth.sign_in_attendee(sb, state, " JO@example.com ", "secret1").id == "auth-3"
        profile, event = auth.join_event(sb, state, "SPRING")
        assert profile["id"] == "auth-3"
        assert SessionKeys.TEMP_USER not in state
        assert state[SessionKeys.CURRENT_EVENT] == event["id"] == "e1"

    def test_attendee_sign_in_without_profile(self, sb):
        sb.auth.accounts[("ghost@example.com", "secret1")] = "ghost"
        with pytest.raises(AuthorizationError, match="No profile"):
            auth.sign_in_attendee(sb, {}, "ghost@example.com", "secret1")
        assert sb.auth.signed_out is True
