"""
Taste profile aggregation.

Reduces every rating a user has given into a summary of what they like:
average rating, would-buy rate, the descriptors they reach for, and weighted
preferences for wine type, region, style, grape and price point. Ratings
below three stars count toward the totals but not toward preferences.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from palate.constants import PreferenceWeights
from palate.utils import calculate_average_rating, safe_divide

logger = logging.getLogger(__name__)


@dataclass
class RegionPreference:
    region: str
    country: str
    score: int


@dataclass
class TasteProfile:
    """Aggregated preferences of one user."""
    user_id: str
    total_ratings: int
    average_rating: float  # 1 decimal
    would_buy_rate: float  # 0-1
    preferred_types: List[Tuple[str, int]] = field(default_factory=list)
    preferred_regions: List[RegionPreference] = field(default_factory=list)
    preferred_styles: List[Tuple[str, int]] = field(default_factory=list)
    preferred_grapes: List[Tuple[str, int]] = field(default_factory=list)
    price_preference: List[Tuple[str, int]] = field(default_factory=list)
    flavor_profile: List[Tuple[str, int]] = field(default_factory=list)

    def type_score(self, wine_type: Optional[str]) -> int:
        return dict(self.preferred_types).get(wine_type, 0)

    def region_score(self, region: Optional[str]) -> int:
        for preference in self.preferred_regions:
            if preference.region == region:
                return preference.score
        return 0

    def style_score(self, style: str) -> int:
        return dict(self.preferred_styles).get(style, 0)

    def grape_score(self, grape: Optional[str]) -> int:
        return dict(self.preferred_grapes).get(grape, 0)

    def price_score(self, price_point: Optional[str]) -> int:
        return dict(self.price_preference).get(price_point, 0)

    @property
    def top_descriptors(self) -> List[str]:
        return [name for name, _ in self.flavor_profile[:5]]


def _ranked(counter: Counter) -> List[Tuple[str, int]]:
    """Counter entries by descending count; ties keep first-seen order."""
    return sorted(counter.items(), key=lambda item: item[1], reverse=True)


def _descriptor_names(rating: Mapping[str, Any]) -> Iterable[str]:
    for link in rating.get('user_wine_descriptors') or []:
        descriptor = (link or {}).get('descriptors') or {}
        name = descriptor.get('name')
        if name:
            yield name


def build_taste_profile(user_id: str, ratings: List[Mapping[str, Any]]) -> Optional[TasteProfile]:
    """
    Build a taste profile from a user's ratings.

    Args:
        user_id: Profile id the ratings belong to
        ratings: Rating rows with `rating`, `would_buy`, the joined
                 `event_wines` record and optional `user_wine_descriptors`

    Returns:
        TasteProfile, or None when the user has not rated anything
    """
    if not ratings:
        return None

    type_scores: Counter = Counter()
    region_scores: Counter = Counter()
    region_countries: Dict[str, str] = {}
    style_scores: Counter = Counter()
    grape_scores: Counter = Counter()
    price_scores: Counter = Counter()
    descriptor_counts: Counter = Counter()

    for r in ratings:
        descriptor_counts.update(_descriptor_names(r))

        wine = r.get('event_wines') or {}
        weight = PreferenceWeights.for_rating(r.get('rating') or 0)
        if not wine or weight == 0:
            continue

        if wine.get('wine_type'):
            type_scores[wine['wine_type']] += weight

        if wine.get('region'):
            region_countries.setdefault(wine['region'], wine.get('country') or '')
            region_scores[wine['region']] += weight

        for style in wine.get('wine_style') or []:
            style_scores[style] += weight

        for grape in wine.get('grape_varieties') or []:
            if grape.get('name'):
                grape_scores[grape['name']] += weight

        if wine.get('price_point'):
            price_scores[wine['price_point']] += weight

    values = [r.get('rating') or 0 for r in ratings]
    would_buy = sum(1 for r in ratings if r.get('would_buy'))

    profile = TasteProfile(
        user_id=user_id,
        total_ratings=len(ratings),
        average_rating=calculate_average_rating(values),
        would_buy_rate=safe_divide(would_buy, len(ratings)),
        preferred_types=_ranked(type_scores),
        preferred_regions=[
            RegionPreference(region=region, country=region_countries[region], score=score)
            for region, score in _ranked(region_scores)
        ],
        preferred_styles=_ranked(style_scores),
        preferred_grapes=_ranked(grape_scores),
        price_preference=_ranked(price_scores),
        flavor_profile=_ranked(descriptor_counts),
    )

    logger.debug(
        f"Taste profile for {user_id}: {profile.total_ratings} ratings, "
        f"avg {profile.average_rating}, would-buy {profile.would_buy_rate:.0%}"
    )
    return profile
