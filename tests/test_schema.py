"""
Tests for Pydantic schemas.

Validates that row and form models enforce correct constraints.
"""

from datetime import date, datetime, timedelta, timezone

import pytest
from pydantic import ValidationError
from palate.schema import EventForm, EventWine, Profile, RatingForm, UserWineForm, WineForm


class TestRatingForm:
    """Test RatingForm validation."""

    def test_valid_rating(self):
        """Ratings 1-5 should pass validation."""
        form = RatingForm(rating=4, personal_notes="Bright acidity", would_buy=True)
        assert form.rating == 4
        assert form.would_buy is True

    def test_rating_below_minimum_raises_error(self):
        """A zero-star rating is rejected."""
        with pytest.raises(ValidationError) as exc_info:
            RatingForm(rating=0)
        assert "rating" in str(exc_info.value)

    def test_rating_above_maximum_raises_error(self):
        """Six stars is off the scale."""
        with pytest.raises(ValidationError):
            RatingForm(rating=6)

    def test_would_buy_defaults_false(self):
        assert RatingForm(rating=3).would_buy is False


class TestEventForm:
    """Test EventForm validation."""

    def test_code_is_upper_cased(self):
        """Event codes are stored upper-case."""
        form = EventForm(event_name="Spring Tasting", event_code="wine24", event_date=date(2025, 4, 12))
        assert form.event_code == "WINE24"

    def test_code_rejects_punctuation(self):
        with pytest.raises(ValidationError) as exc_info:
            EventForm(event_name="Spring Tasting", event_code="WINE-24", event_date=date(2025, 4, 12))
        assert "letters and digits" in str(exc_info.value)

    def test_code_too_short(self):
        with pytest.raises(ValidationError):
            EventForm(event_name="Spring Tasting", event_code="AB", event_date=date(2025, 4, 12))

    def test_blank_name_rejected(self):
        """Whitespace is stripped before the length check."""
        with pytest.raises(ValidationError):
            EventForm(event_name="   ", event_code="WINE24", event_date=date(2025, 4, 12))


class TestWineForm:
    """Test WineForm validation."""

    def test_enum_values_are_stored_as_strings(self):
        form = WineForm(wine_name="Sancerre", wine_type="white", price_point="Premium")
        assert form.wine_type == "white"
        assert form.price_point == "Premium"

    def test_unknown_wine_type_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            WineForm(wine_name="Mystery", wine_type="blue")
        assert "wine_type" in str(exc_info.value)

    def test_vintage_range(self):
        """Vintages before 1800 are not plausible."""
        with pytest.raises(ValidationError):
            WineForm(wine_name="Ancient", vintage=1500)

    def test_grapes_accept_dicts(self):
        form = WineForm(wine_name="Blend", grape_varieties=[{"name": "Merlot", "percentage": 60}])
        assert form.grape_varieties[0].name == "Merlot"
        assert form.grape_varieties[0].percentage == 60


class TestUserWineForm:
    """Test UserWineForm validation."""

    def test_minimal_submission(self):
        form = UserWineForm(wine_name="Garage Red")
        assert form.wine_type is None
        assert form.producer is None

    def test_name_required(self):
        with pytest.raises(ValidationError):
            UserWineForm(wine_name="")


class TestRows:
    """Test backend row models."""

    def test_event_wine_null_lists_become_empty(self):
        """The backend returns NULL for empty JSON arrays."""
        wine = EventWine(id="w1", event_id="e1", wine_name="Barolo", grape_varieties=None, wine_style=None)
        assert wine.grape_varieties == []
        assert wine.wine_style == []

    def test_rows_keep_unknown_columns(self):
        wine = EventWine(id="w1", event_id="e1", wine_name="Barolo", event_locations={"location_name": "Bar 1"})
        assert wine.model_dump()["event_locations"] == {"location_name": "Bar 1"}


class TestProfileExpiry:
    """Test temporary account expiry."""

    now = datetime(2025, 6, 20, 12, 0, tzinfo=timezone.utc)

    def test_temp_account_expired(self):
        profile = Profile(id="temp_1", is_temp_account=True, account_expires_at=self.now - timedelta(minutes=1))
        assert profile.is_expired(self.now) is True

    def test_temp_account_still_valid(self):
        profile = Profile(id="temp_1", is_temp_account=True, account_expires_at=self.now + timedelta(days=1))
        assert profile.is_expired(self.now) is False

    def test_permanent_account_never_expires(self):
        """Only temporary accounts lapse."""
        profile = Profile(id="admin_1", is_temp_account=False, account_expires_at=self.now - timedelta(days=30))
        assert profile.is_expired(self.now) is False

    def test_naive_expiry_treated_as_utc(self):
        profile = Profile(id="temp_1", is_temp_account=True, account_expires_at="2025-06-19T12:00:00")
        assert profile.is_expired(self.now) is True
