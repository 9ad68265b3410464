"""
Tests for rating analytics.

Fixtures: w1 rated 5 and 4, w2 rated 1 and 5, w3 rated 3 once.
"""

import pytest
from palate import analytics


class TestRatingDistribution:
    """Test the 1-5 histogram."""

    def test_buckets(self, event_ratings):
        assert analytics.rating_distribution(event_ratings) == [1, 0, 1, 1, 2]

    def test_out_of_scale_ignored(self):
        assert analytics.rating_distribution([{"rating": 0}, {"rating": 6}, {"rating": 3}]) == [0, 0, 1, 0, 0]

    def test_table_percentages(self, event_ratings):
        table = analytics.rating_distribution_table(event_ratings)
        assert table[4] == {"rating": 5, "count": 2, "percent": 40}
        assert sum(row["count"] for row in table) == len(event_ratings)


class TestSummaries:
    """Test headline totals."""

    def test_summarize(self, event_ratings):
        summary = analytics.summarize_ratings(event_ratings)
        assert summary.total_ratings == 5
        assert summary.total_participants == 3
        assert summary.average_rating == pytest.approx(3.6)
        assert summary.would_buy_percent == 40

    def test_summarize_empty(self):
        summary = analytics.summarize_ratings([])
        assert summary.average_rating == 0.0
        assert summary.would_buy_percent == 0

    def test_platform_stats(self, event_ratings):
        stats = analytics.platform_stats(12, 30, 4, event_ratings)
        assert stats.total_master_wines == 12
        assert stats.total_ratings == 5
        assert stats.average_rating == pytest.approx(3.6)


class TestRankings:
    """Test per-wine rankings."""

    def test_rank_all_wines(self, event_wines, event_ratings):
        rankings = analytics.rank_wines(event_wines, event_ratings)
        assert [r.wine_id for r in rankings] == ["w1", "w2", "w3"]
        assert rankings[0].avg_rating == pytest.approx(4.5)
        assert rankings[0].would_buy_percent == 100

    def test_unrated_wines_included_with_zeros(self, event_wines):
        rankings = analytics.rank_wines(event_wines, [])
        assert len(rankings) == 3
        assert all(r.rating_count == 0 and r.avg_rating == 0.0 for r in rankings)

    def test_top_wines_need_two_ratings(self, event_wines, event_ratings):
        """w3 has a single rating and is left out."""
        top = analytics.top_wines(event_wines, event_ratings)
        assert [w.wine_id for w in top] == ["w1", "w2"]

    def test_top_wines_limit(self, event_wines, event_ratings):
        assert len(analytics.top_wines(event_wines, event_ratings, limit=1)) == 1

    def test_top_wines_across_events_pools_master_wines(self, event_wines, event_ratings):
        """The same master wine poured at two events is ranked once."""
        wines = event_wines + [
            {"id": "w4", "event_id": "e2", "wine_name": "Sancerre Blanc", "wine_type": "white",
             "wine_master_id": "m1"},
        ]
        ratings = event_ratings + [
            {"id": "r6", "event_wine_id": "w4", "user_id": "u4", "rating": 3, "would_buy": False},
        ]
        top = analytics.top_wines_across_events(wines, ratings)
        assert [w.wine_id for w in top] == ["w1", "w2"]
        assert top[0].rating_count == 3
        assert top[0].avg_rating == pytest.approx(4.0)

    def test_top_wines_across_events_pools_unlinked_by_name(self):
        wines = [
            {"id": "a", "wine_name": "House Red", "wine_master_id": None},
            {"id": "b", "wine_name": "House Red", "wine_master_id": ""},
        ]
        ratings = [
            {"id": "r1", "event_wine_id": "a", "user_id": "u1", "rating": 4},
            {"id": "r2", "event_wine_id": "b", "user_id": "u2", "rating": 2},
        ]
        [ranking] = analytics.top_wines_across_events(wines, ratings)
        assert ranking.wine_id == "a"
        assert ranking.rating_count == 2
        assert ranking.avg_rating == pytest.approx(3.0)


class TestBreakdowns:
    """Test type breakdown and divisive wine."""

    def test_wine_type_breakdown(self, event_wines, event_ratings):
        breakdown = analytics.wine_type_breakdown(event_wines, event_ratings)
        assert [(b.wine_type, b.count) for b in breakdown] == [("white", 2), ("red", 2), ("sparkling", 1)]
        assert breakdown[0].avg_rating == pytest.approx(4.5)

    def test_most_divisive(self, event_wines, event_ratings):
        divisive = analytics.most_divisive_wine(event_wines, event_ratings)
        assert divisive.wine_id == "w2"
        assert (divisive.min_rating, divisive.max_rating, divisive.rating_spread) == (1, 5, 4)

    def test_most_divisive_needs_two_ratings(self, event_wines):
        ratings = [{"id": "r1", "event_wine_id": "w1", "user_id": "u1", "rating": 5}]
        assert analytics.most_divisive_wine(event_wines, ratings) is None

    def test_top_descriptors(self):
        rows = [
            {"descriptors": {"name": "cherry"}},
            {"descriptors": {"name": "oak"}},
            {"descriptors": {"name": "cherry"}},
            {"descriptors": None},
        ]
        assert analytics.top_descriptors(rows) == [{"name": "cherry", "count": 2}, {"name": "oak", "count": 1}]

    def test_count_by(self, event_wines):
        counts = analytics.count_by(event_wines + [{"id": "x"}], "country")
        assert counts[0]["count"] == 1
        assert {"country": "Unknown", "count": 1} in counts


class TestEventAnalytics:
    """Test the full bundle."""

    def test_bundle(self, event_wines, event_ratings):
        report = analytics.event_analytics(event_wines, event_ratings, [{"descriptors": {"name": "citrus"}}])
        assert report.total_wines == 3
        assert report.total_participants == 3
        assert report.average_wines_rated_per_user == pytest.approx(1.7)
        assert report.most_divisive.wine_id == "w2"
        assert report.top_descriptors == [{"name": "citrus", "count": 1}]
        assert report.recent_activity[0]["id"] == "r5"
        assert report.recent_activity[0]["wine_name"] == "Cava Brut"

    def test_no_ratings(self, event_wines):
        report = analytics.event_analytics(event_wines, [])
        assert report.total_ratings == 0
        assert report.rating_distribution == [0, 0, 0, 0, 0]
        assert len(report.wine_rankings) == 3
        assert report.most_divisive is None


class TestPersonalBreakdown:
    """Test a user's favourite type and region."""

    ratings = [
        {"rating": 5, "event_wines": {"wine_type": "red", "region": "Rioja"}},
        {"rating": 4, "event_wines": {"wine_type": "red", "region": "Rioja"}},
        {"rating": 5, "event_wines": {"wine_type": "white", "region": "Mosel"}},
        {"rating": 2, "event_wines": {"wine_type": "white", "region": None}},
        {"rating": 3, "event_wines": {"wine_type": "white"}},
    ]

    def test_breakdown_sorted_by_count(self):
        breakdown = analytics.personal_breakdown(self.ratings, "wine_type")
        assert [(b.key, b.count) for b in breakdown] == [("white", 3), ("red", 2)]
        assert breakdown[1].avg_rating == pytest.approx(4.5)

    def test_favorite_requires_two_ratings(self):
        """Mosel has the best average but only one rating."""
        breakdown = analytics.personal_breakdown(self.ratings, "region")
        assert analytics.favorite(breakdown) == "Rioja"

    def test_favorite_falls_back_to_most_rated(self):
        breakdown = analytics.personal_breakdown(self.ratings[2:3], "region")
        assert analytics.favorite(breakdown) == "Mosel"

    def test_favorite_empty(self):
        assert analytics.favorite([]) == ""


class TestFavoriteWines:
    """Test the favourites list filters and sorts."""

    ratings = [
        {"id": "r1", "rating": 3, "would_buy": True, "created_at": "2025-06-01T10:00:00+00:00",
         "event_wines": {"wine_name": "soave"}},
        {"id": "r2", "rating": 5, "would_buy": False, "created_at": "2025-06-03T10:00:00+00:00",
         "event_wines": {"wine_name": "Barolo"}},
        {"id": "r3", "rating": 4, "would_buy": True, "created_at": "2025-06-02T10:00:00+00:00",
         "event_wines": {"wine_name": "Chablis"}},
    ]

    def ids(self, rows):
        return [r["id"] for r in rows]

    def test_filters(self):
        assert self.ids(analytics.favorite_wines(self.ratings, 'would_buy')) == ["r3", "r1"]
        assert self.ids(analytics.favorite_wines(self.ratings, 'top_rated')) == ["r2", "r3"]

    def test_sorts(self):
        assert self.ids(analytics.favorite_wines(self.ratings)) == ["r2", "r3", "r1"]
        assert self.ids(analytics.favorite_wines(self.ratings, sort='rating')) == ["r2", "r3", "r1"]
        assert self.ids(analytics.favorite_wines(self.ratings, sort='name')) == ["r2", "r3", "r1"]
        assert self.ids(analytics.favorite_wines(self.ratings, 'would_buy', 'name')) == ["r3", "r1"]

    def test_unknown_filter(self):
        with pytest.raises(ValueError):
            analytics.favorite_wines(self.ratings, 'cheap')
