"""
Tests for shared helpers.
"""

from datetime import datetime, timezone

import pytest
from palate import config, utils


class TestCodes:
    """Test code and id generation."""

    def test_event_code(self):
        code = utils.generate_event_code()
        assert len(code) == config.EVENT_CODE_LENGTH
        assert code.isalnum() and code == code.upper()

    def test_buddy_code_skips_ambiguous_letters(self):
        for _ in range(50):
            code = utils.generate_buddy_code()
            assert len(code) == 4
            assert not set(code) & {"I", "O"}

    def test_profile_id(self):
        parts = utils.generate_profile_id("booth").split("_")
        assert parts[0] == "booth"
        assert parts[1].isdigit()
        assert len(parts[2]) == 9

    def test_normalize_code(self):
        assert utils.normalize_code("  abc1 ") == "ABC1"
        assert utils.normalize_code(None) == ""


class TestSanitize:
    """Test free-text cleanup."""

    def test_blank_becomes_none(self):
        assert utils.sanitize_text_input("   ") is None
        assert utils.sanitize_text_input(None) is None

    def test_truncated(self):
        assert len(utils.sanitize_text_input("x" * 5000)) == config.MAX_NOTES_LENGTH

    def test_control_characters_removed(self):
        assert utils.sanitize_text_input("oak\x00y\tnotes") == "oaky\tnotes"

    def test_blank_to_none(self):
        assert utils.blank_to_none("") is None
        assert utils.blank_to_none(0) == 0


class TestNumbers:
    """Test rounding and averages."""

    @pytest.mark.parametrize("value,expected", [(2.25, 2.3), (2.35, 2.4), (4.449, 4.4), (3.0, 3.0)])
    def test_round_half_up(self, value, expected):
        assert utils.round_half_up(value, 1) == pytest.approx(expected)

    def test_average(self):
        assert utils.calculate_average_rating([5, 4, 4]) == pytest.approx(4.3)
        assert utils.calculate_average_rating([]) == 0.0

    def test_percent(self):
        assert utils.percent(1, 3) == 33
        assert utils.percent(1, 0) == 0


class TestDates:
    """Test timestamp parsing."""

    def test_zulu_suffix(self):
        parsed = utils.parse_timestamp("2025-06-14T18:00:00Z")
        assert parsed == datetime(2025, 6, 14, 18, tzinfo=timezone.utc)

    def test_date_only_is_utc_midnight(self):
        assert utils.parse_timestamp("2025-06-14") == datetime(2025, 6, 14, tzinfo=timezone.utc)

    def test_garbage(self):
        assert utils.parse_timestamp("not a date") is None
        assert utils.format_date(None) == ""

    def test_format_date(self):
        assert utils.format_date("2025-06-14") == "Jun 14, 2025"


class TestDisplay:
    """Test display helpers."""

    def test_wine_emoji_fallback(self):
        assert utils.wine_emoji("Sparkling") == "🍾"
        assert utils.wine_emoji("mystery") == "🍷"
        assert utils.wine_emoji(None) == "🍷"

    def test_truncate(self):
        assert utils.truncate("Château Margaux", 7) == "Château..."
