"""
Tests for wine recommendations.
"""

import pytest
from palate.constants import Tables
from palate.recommendations import calculate_match_score, get_recommendations, popular_wines, rank_recommendations
from palate.taste_profile import TasteProfile, build_taste_profile


@pytest.fixture
def red_lover():
    """Profile of someone who loves Piedmont reds."""
    return TasteProfile(
        user_id="u1",
        total_ratings=4,
        average_rating=4.5,
        would_buy_rate=0.5,
        preferred_types=[("red", 5), ("white", 1)],
        preferred_styles=[("bold", 3), ("earthy", 2)],
        preferred_grapes=[("Nebbiolo", 3)],
        price_preference=[("Premium", 2)],
    )


class TestCalculateMatchScore:
    """Test per-attribute caps and reasons."""

    def test_type_capped_at_30(self, red_lover):
        score, reasons = calculate_match_score({"wine_type": "red"}, red_lover)
        assert score == 30
        assert reasons == ["You love red wines"]

    def test_weak_type_has_no_reason(self, red_lover):
        score, reasons = calculate_match_score({"wine_type": "white"}, red_lover)
        assert score == 10
        assert reasons == []

    def test_region_reason(self):
        profile = build_taste_profile("u1", [
            {"rating": 4, "event_wines": {"region": "Piedmont", "country": "Italy"}},
        ])
        score, reasons = calculate_match_score({"region": "Piedmont"}, profile)
        assert score == 16
        assert reasons == ["From Piedmont, a region you enjoy"]

    def test_styles_summed_and_capped(self, red_lover):
        """bold 3x5 + earthy 2x5 = 25."""
        score, reasons = calculate_match_score({"wine_style": ["bold", "earthy", "light"]}, red_lover)
        assert score == 25
        assert reasons == ["bold, earthy style you prefer"]

    def test_grape_reason(self, red_lover):
        score, reasons = calculate_match_score({"grape_varieties": [{"name": "Nebbiolo"}]}, red_lover)
        assert score == 15
        assert reasons == ["Made with Nebbiolo"]

    def test_price_adds_without_reason(self, red_lover):
        score, reasons = calculate_match_score({"price_point": "Premium"}, red_lover)
        assert score == 4
        assert reasons == []

    def test_full_match_clamped_to_100(self, red_lover):
        wine = {
            "wine_type": "red", "wine_style": ["bold", "earthy"],
            "grape_varieties": [{"name": "Nebbiolo"}], "price_point": "Premium",
        }
        score, _ = calculate_match_score(wine, red_lover)
        assert score == 30 + 25 + 15 + 4

    def test_nothing_in_common(self, red_lover):
        assert calculate_match_score({"wine_type": "orange"}, red_lover) == (0, [])


class TestRankRecommendations:
    """Test filtering and ordering."""

    def test_rated_and_zero_score_wines_dropped(self, red_lover):
        wines = [
            {"id": "a", "wine_type": "red"},
            {"id": "b", "wine_type": "orange"},
            {"id": "c", "wine_type": "white"},
        ]
        ranked = rank_recommendations(wines, red_lover, rated_ids={"a"})
        assert [r.id for r in ranked] == ["c"]

    def test_best_first_and_limited(self, red_lover):
        wines = [
            {"id": "a", "wine_type": "white"},
            {"id": "b", "wine_type": "red", "wine_style": ["bold"]},
            {"id": "c", "wine_type": "red"},
        ]
        ranked = rank_recommendations(wines, red_lover, limit=2, source="master")
        assert [r.id for r in ranked] == ["b", "c"]
        assert all(r.source == "master" for r in ranked)


class TestPopularWines:
    """Test the fallback for users without history."""

    def test_average_scaled_to_100(self):
        wine = {"id": "w1", "event_id": "e1", "wine_name": "Barolo"}
        ratings = [
            {"event_wine_id": "w1", "rating": 5, "event_wines": wine},
            {"event_wine_id": "w1", "rating": 4, "event_wines": wine},
        ]
        [recommendation] = popular_wines(ratings)
        assert recommendation.match_score == pytest.approx(90)
        assert recommendation.match_reasons == ["Highly rated (4.5★ from 2 ratings)"]

    def test_event_filter(self):
        ratings = [
            {"event_wine_id": "w1", "rating": 5, "event_wines": {"id": "w1", "event_id": "e1"}},
            {"event_wine_id": "w2", "rating": 5, "event_wines": {"id": "w2", "event_id": "e2"}},
        ]
        assert [r.id for r in popular_wines(ratings, event_id="e2")] == ["w2"]


class TestGetRecommendations:
    """Test the backend-facing entry point."""

    @pytest.fixture
    def backend(self, make_sb):
        def build(user_ratings):
            return make_sb({
                Tables.RATINGS: user_ratings,
                Tables.EVENT_WINES: [
                    {"id": "w1", "event_id": "e1", "wine_name": "Barolo", "wine_type": "red"},
                    {"id": "w2", "event_id": "e1", "wine_name": "Barbaresco", "wine_type": "red"},
                    {"id": "w3", "event_id": "e1", "wine_name": "Soave", "wine_type": "white"},
                ],
                Tables.MASTER_WINES: [
                    {"id": "m1", "wine_name": "Brunello", "wine_type": "red"},
                ],
            })
        return build

    def test_invalid_source(self, fake_sb):
        with pytest.raises(ValueError):
            get_recommendations(fake_sb, "u1", source="cellar")

    def test_falls_back_to_popular_wines(self, backend):
        """One rating is not enough for a profile."""
        sb = backend([
            {"user_id": "u1", "event_wine_id": "w1", "rating": 5,
             "event_wines": {"id": "w1", "event_id": "e1", "wine_type": "red"}},
        ])
        recommendations = get_recommendations(sb, "u1")
        assert [r.id for r in recommendations] == ["w1"]
        assert recommendations[0].match_reasons[0].startswith("Highly rated")

    def test_excludes_rated_event_wines(self, backend):
        wine = {"id": "w1", "event_id": "e1", "wine_type": "red"}
        sb = backend([
            {"user_id": "u1", "event_wine_id": "w1", "rating": 5, "event_wines": wine},
            {"user_id": "u1", "event_wine_id": "w1b", "rating": 5, "event_wines": dict(wine, id="w1b")},
        ])
        ids = [r.id for r in get_recommendations(sb, "u1")]
        assert "w1" not in ids
        assert {"w2", "m1"} <= set(ids)
        assert "w3" not in ids

    def test_master_source_only(self, backend):
        wine = {"id": "w1", "event_id": "e1", "wine_type": "red"}
        sb = backend([
            {"user_id": "u1", "event_wine_id": "w1", "rating": 5, "event_wines": wine},
            {"user_id": "u1", "event_wine_id": "w2", "rating": 4, "event_wines": dict(wine, id="w2")},
        ])
        recommendations = get_recommendations(sb, "u1", source="master")
        assert [(r.id, r.source) for r in recommendations] == [("m1", "master")]
