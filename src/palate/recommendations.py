"""
Wine recommendations from a user's taste profile.

Scores candidate wines (event wines and master wines) against the weighted
preferences in a TasteProfile. Users with fewer than two ratings get the
most popular wines instead.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from supabase import Client

from palate import config
from palate.constants import MatchScoreCaps, Tables
from palate.error_handling import raise_backend_error
from palate.ratings_repo import list_user_ratings
from palate.taste_profile import TasteProfile, build_taste_profile
from palate.utils import round_half_up

logger = logging.getLogger(__name__)

SOURCES = ('event', 'master', 'all')


@dataclass
class Recommendation:
    """A wine suggested to a user, with the reasons it matched."""
    wine: Dict[str, Any]
    match_score: float
    match_reasons: List[str] = field(default_factory=list)
    source: str = 'event'  # 'event' or 'master'

    @property
    def id(self) -> Optional[str]:
        return self.wine.get('id')

    @property
    def wine_name(self) -> Optional[str]:
        return self.wine.get('wine_name')


def calculate_match_score(wine: Mapping[str, Any], profile: TasteProfile) -> Tuple[float, List[str]]:
    """
    Score how well a wine fits a taste profile.

    Each attribute contributes its preference weight times a multiplier,
    capped per attribute:

        type    up to 30 (weight x 10)
        region  up to 25 (weight x 8)
        styles  up to 25 (sum of weight x 5)
        grapes  up to 15 (sum of weight x 5)
        price   up to 5  (weight x 2)

    Args:
        wine: Event or master wine row
        profile: The user's taste profile

    Returns:
        (score clamped to 0-100, human-readable match reasons)
    """
    caps = MatchScoreCaps
    score = 0
    reasons: List[str] = []

    type_weight = profile.type_score(wine.get('wine_type'))
    if type_weight:
        type_score = min(caps.TYPE_CAP, type_weight * caps.TYPE_MULTIPLIER)
        score += type_score
        if type_score >= caps.TYPE_REASON_AT:
            reasons.append(f"You love {wine.get('wine_type')} wines")

    region_weight = profile.region_score(wine.get('region'))
    if region_weight:
        region_score = min(caps.REGION_CAP, region_weight * caps.REGION_MULTIPLIER)
        score += region_score
        if region_score >= caps.REGION_REASON_AT:
            reasons.append(f"From {wine.get('region')}, a region you enjoy")

    matched_styles = []
    style_score = 0
    for style in wine.get('wine_style') or []:
        weight = profile.style_score(style)
        if weight:
            style_score += weight * caps.STYLE_MULTIPLIER
            matched_styles.append(style)
    style_score = min(caps.STYLE_CAP, style_score)
    score += style_score
    if matched_styles and style_score >= caps.STYLE_REASON_AT:
        reasons.append(f"{', '.join(matched_styles[:2])} style you prefer")

    matched_grapes = []
    grape_score = 0
    for grape in wine.get('grape_varieties') or []:
        name = (grape or {}).get('name')
        weight = profile.grape_score(name)
        if weight:
            grape_score += weight * caps.GRAPE_MULTIPLIER
            matched_grapes.append(name)
    grape_score = min(caps.GRAPE_CAP, grape_score)
    score += grape_score
    if matched_grapes and grape_score >= caps.GRAPE_REASON_AT:
        reasons.append(f"Made with {matched_grapes[0]}")

    price_weight = profile.price_score(wine.get('price_point'))
    if price_weight:
        score += min(caps.PRICE_CAP, price_weight * caps.PRICE_MULTIPLIER)

    return min(caps.MAX_SCORE, score), reasons


def rank_recommendations(
    wines: Iterable[Mapping[str, Any]],
    profile: TasteProfile,
    rated_ids: Optional[Set[str]] = None,
    limit: int = config.RECOMMENDATION_LIMIT,
    source: str = 'event'
) -> List[Recommendation]:
    """
    Score wines, drop rated and non-matching ones, best first.

    Args:
        wines: Candidate wine rows
        profile: The user's taste profile
        rated_ids: Wine ids the user already rated
        limit: Maximum number of recommendations
        source: Label stored on each recommendation
    """
    rated_ids = rated_ids or set()
    recommendations = []
    for wine in wines:
        if wine.get('id') in rated_ids:
            continue
        score, reasons = calculate_match_score(wine, profile)
        if score > 0:
            recommendations.append(
                Recommendation(wine=dict(wine), match_score=score, match_reasons=reasons, source=source)
            )

    recommendations.sort(key=lambda r: r.match_score, reverse=True)
    return recommendations[:limit]


def popular_wines(
    ratings: Iterable[Mapping[str, Any]],
    limit: int = config.RECOMMENDATION_LIMIT,
    event_id: Optional[str] = None
) -> List[Recommendation]:
    """
    Highest-average wines, used when a user has too little history.

    Args:
        ratings: Rating rows with `event_wine_id`, `rating` and joined `event_wines`
        limit: Maximum number of wines
        event_id: Only consider wines poured at this event
    """
    stats: Dict[str, Dict[str, Any]] = {}
    for r in ratings:
        wine = r.get('event_wines')
        if not wine:
            continue
        if event_id and wine.get('event_id') != event_id:
            continue
        entry = stats.setdefault(r['event_wine_id'], {'wine': wine, 'total': 0, 'count': 0})
        entry['total'] += r.get('rating') or 0
        entry['count'] += 1

    recommendations = []
    for entry in stats.values():
        average = entry['total'] / entry['count']
        recommendations.append(Recommendation(
            wine=dict(entry['wine']),
            match_score=average * MatchScoreCaps.POPULARITY_SCALE,
            match_reasons=[
                f"Highly rated ({round_half_up(average, 1):.1f}★ from {entry['count']} ratings)"
            ],
            source='event',
        ))

    recommendations.sort(key=lambda r: r.match_score, reverse=True)
    return recommendations[:limit]


def _fetch_popular(sb: Client, limit: int, event_id: Optional[str]) -> List[Recommendation]:
    try:
        res = (
            sb.table(Tables.RATINGS)
            .select("event_wine_id, rating, event_wines (*)")
            .execute()
        )
    except Exception as e:
        raise_backend_error(e, "load popular wines")
    return popular_wines(res.data or [], limit=limit, event_id=event_id)


def _fetch_candidates(sb: Client, source: str, event_id: Optional[str]) -> List[Tuple[str, Sequence[Dict[str, Any]]]]:
    batches = []
    try:
        if source in ('event', 'all'):
            query = sb.table(Tables.EVENT_WINES).select("*")
            if event_id:
                query = query.eq("event_id", event_id)
            batches.append(('event', query.execute().data or []))

        if source in ('master', 'all'):
            res = sb.table(Tables.MASTER_WINES).select("*").limit(config.MASTER_LIST_LIMIT).execute()
            batches.append(('master', res.data or []))
    except Exception as e:
        raise_backend_error(e, "load candidate wines")
    return batches


def get_recommendations(
    sb: Client,
    user_id: str,
    event_id: Optional[str] = None,
    exclude_rated: bool = True,
    limit: int = config.RECOMMENDATION_LIMIT,
    source: str = 'all'
) -> List[Recommendation]:
    """
    Recommend wines for a user.

    Args:
        sb: Supabase client
        user_id: Profile id
        event_id: Restrict event wines to one event
        exclude_rated: Skip event wines the user already rated
        limit: Maximum number of recommendations
        source: 'event', 'master' or 'all'

    Returns:
        Recommendations sorted by match score, best first
    """
    if source not in SOURCES:
        raise ValueError(f"source must be one of {SOURCES}, got {source!r}")

    ratings = list_user_ratings(sb, user_id)
    profile = build_taste_profile(user_id, ratings)

    if profile is None or profile.total_ratings < config.MIN_RATINGS_FOR_PROFILE:
        logger.info(f"Not enough ratings for {user_id}, falling back to popular wines")
        return _fetch_popular(sb, limit, event_id)

    rated_ids = {r.get('event_wine_id') for r in ratings} if exclude_rated else set()

    recommendations: List[Recommendation] = []
    for batch_source, wines in _fetch_candidates(sb, source, event_id):
        # Rated ids are event wine ids, so they never exclude master wines
        exclude = rated_ids if batch_source == 'event' else set()
        recommendations.extend(
            rank_recommendations(wines, profile, exclude, limit=len(wines), source=batch_source)
        )

    recommendations.sort(key=lambda r: r.match_score, reverse=True)
    logger.info(f"{len(recommendations)} matching wines for {user_id}, returning top {limit}")
    return recommendations[:limit]
