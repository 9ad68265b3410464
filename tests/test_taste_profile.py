"""
Tests for taste profile building.
"""

import pytest
from palate.taste_profile import build_taste_profile


def rated(rating, would_buy=False, descriptors=(), **wine):
    """Rating row with the joined wine and descriptor links."""
    return {
        "rating": rating,
        "would_buy": would_buy,
        "event_wine_id": wine.get("id"),
        "event_wines": wine,
        "user_wine_descriptors": [{"descriptors": {"name": name}} for name in descriptors],
    }


class TestBuildTasteProfile:
    """Test preference weighting."""

    def test_no_ratings(self):
        assert build_taste_profile("u1", []) is None

    def test_weights_by_star_rating(self):
        """5 stars weigh 3, 4 stars 2, 3 stars 1, below 3 nothing."""
        ratings = [
            rated(5, id="a", wine_type="red"),
            rated(4, id="b", wine_type="red"),
            rated(3, id="c", wine_type="white"),
            rated(2, id="d", wine_type="rosé"),
        ]
        profile = build_taste_profile("u1", ratings)
        assert profile.preferred_types == [("red", 5), ("white", 1)]
        assert profile.type_score("rosé") == 0

    def test_totals(self):
        ratings = [
            rated(5, would_buy=True, id="a", wine_type="red"),
            rated(4, id="b", wine_type="red"),
            rated(2, id="c", wine_type="white"),
        ]
        profile = build_taste_profile("u1", ratings)
        assert profile.total_ratings == 3
        assert profile.average_rating == pytest.approx(3.7)
        assert profile.would_buy_rate == pytest.approx(1 / 3)

    def test_regions_keep_country(self):
        ratings = [rated(5, id="a", region="Rioja", country="Spain")]
        profile = build_taste_profile("u1", ratings)
        assert profile.preferred_regions[0].region == "Rioja"
        assert profile.preferred_regions[0].country == "Spain"
        assert profile.region_score("Rioja") == 3
        assert profile.region_score("Unknown") == 0

    def test_styles_grapes_and_price(self):
        ratings = [
            rated(5, id="a", wine_style=["bold", "oaky"], grape_varieties=[{"name": "Tempranillo"}],
                  price_point="Premium"),
            rated(4, id="b", wine_style=["bold"], grape_varieties=None, price_point="Budget"),
        ]
        profile = build_taste_profile("u1", ratings)
        assert profile.preferred_styles == [("bold", 5), ("oaky", 3)]
        assert profile.grape_score("Tempranillo") == 3
        assert profile.price_score("Premium") == 3
        assert profile.price_score("Budget") == 2

    def test_descriptors_counted_for_every_rating(self):
        """Flavors are counted regardless of the star rating."""
        ratings = [
            rated(1, id="a", wine_type="red", descriptors=["cherry", "oak"]),
            rated(5, id="b", wine_type="red", descriptors=["cherry"]),
        ]
        profile = build_taste_profile("u1", ratings)
        assert profile.flavor_profile == [("cherry", 2), ("oak", 1)]
        assert profile.top_descriptors == ["cherry", "oak"]

    def test_ratings_without_wine_still_count(self):
        ratings = [{"rating": 4, "would_buy": False, "event_wines": None}]
        profile = build_taste_profile("u1", ratings)
        assert profile.total_ratings == 1
        assert profile.preferred_types == []

    def test_ties_keep_first_seen_order(self):
        ratings = [rated(5, id="a", wine_type="white"), rated(5, id="b", wine_type="red")]
        profile = build_taste_profile("u1", ratings)
        assert [name for name, _ in profile.preferred_types] == ["white", "red"]
