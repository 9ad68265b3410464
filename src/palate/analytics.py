"""
Event and platform analytics.

Every function here is a single pass over rating and wine rows already
fetched from the backend. Rating rows carry `event_wine_id`, `user_id`,
`rating`, `would_buy` (and optionally `id`, `created_at`); wine rows carry
`id`, `wine_name`, `producer`, `wine_type` (and optionally `wine_master_id`).

Sorting is always stable, so wines with equal averages keep the order in
which they were passed in.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import pandas as pd

from palate import config
from palate.constants import RATING_SCALE
from palate.utils import calculate_average_rating, percent, round_half_up, safe_divide

logger = logging.getLogger(__name__)

RATING_COLUMNS = ['id', 'event_wine_id', 'user_id', 'rating', 'would_buy', 'created_at']
WINE_COLUMNS = ['id', 'wine_name', 'producer', 'wine_type', 'wine_master_id', 'region', 'country']


@dataclass
class RatingSummary:
    total_ratings: int
    total_participants: int
    average_rating: float
    would_buy_percent: int


@dataclass
class WineRanking:
    """Aggregated ratings for one wine."""
    wine_id: str
    wine_name: str
    producer: Optional[str]
    wine_type: Optional[str]
    avg_rating: float
    rating_count: int
    would_buy_count: int
    would_buy_percent: int


@dataclass
class TypeBreakdown:
    wine_type: str
    count: int
    avg_rating: float


@dataclass
class DivisiveWine:
    wine_id: str
    wine_name: str
    producer: Optional[str]
    rating_spread: int
    min_rating: int
    max_rating: int


@dataclass
class Breakdown:
    """Count and average of a user's ratings grouped by one wine attribute."""
    key: str
    count: int
    avg_rating: float


@dataclass
class EventAnalytics:
    """Everything the admin analytics page shows for a set of events."""
    total_ratings: int = 0
    total_participants: int = 0
    total_wines: int = 0
    average_rating: float = 0.0
    would_buy_percent: int = 0
    average_wines_rated_per_user: float = 0.0
    rating_distribution: List[int] = field(default_factory=lambda: [0] * len(RATING_SCALE))
    wine_rankings: List[WineRanking] = field(default_factory=list)
    top_wines: List[WineRanking] = field(default_factory=list)
    type_breakdown: List[TypeBreakdown] = field(default_factory=list)
    most_divisive: Optional[DivisiveWine] = None
    top_descriptors: List[Dict[str, Any]] = field(default_factory=list)
    recent_activity: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class PlatformStats:
    total_master_wines: int
    total_event_wines: int
    total_events: int
    total_ratings: int
    average_rating: float
    would_buy_percent: int


# =======================
# FRAME HELPERS
# =======================

def _frame(rows: Iterable[Mapping[str, Any]], columns: Sequence[str]) -> pd.DataFrame:
    """DataFrame guaranteed to have the given columns (missing ones are None)."""
    df = pd.DataFrame(list(rows))
    for column in columns:
        if column not in df.columns:
            df[column] = None
    return df


def _ratings_frame(ratings: Iterable[Mapping[str, Any]]) -> pd.DataFrame:
    df = _frame(ratings, RATING_COLUMNS)
    df['rating'] = pd.to_numeric(df['rating'], errors='coerce')
    df = df[df['rating'].notna()].copy()
    df['would_buy'] = df['would_buy'].fillna(False).astype(bool)
    return df


def _wines_frame(wines: Iterable[Mapping[str, Any]]) -> pd.DataFrame:
    return _frame(wines, WINE_COLUMNS)


def _clean(value: Any) -> Any:
    """NaN and None both become None."""
    if value is None:
        return None
    if isinstance(value, float) and pd.isna(value):
        return None
    return value


def _per_wine_stats(ratings_df: pd.DataFrame, key: str = 'event_wine_id') -> pd.DataFrame:
    """Mean, count and would-buy count of ratings grouped by a key column."""
    if ratings_df.empty:
        return pd.DataFrame({
            key: pd.Series(dtype=object),
            'mean_rating': pd.Series(dtype=float),
            'rating_count': pd.Series(dtype=int),
            'would_buy_count': pd.Series(dtype=int),
            'min_rating': pd.Series(dtype=float),
            'max_rating': pd.Series(dtype=float),
        })

    grouped = ratings_df.groupby(key, sort=False)
    stats = grouped.agg(
        mean_rating=('rating', 'mean'),
        rating_count=('rating', 'size'),
        would_buy_count=('would_buy', 'sum'),
        min_rating=('rating', 'min'),
        max_rating=('rating', 'max'),
    )
    return stats.reset_index()


def _rankings_from(merged: pd.DataFrame) -> List[WineRanking]:
    rankings = []
    for row in merged.to_dict('records'):
        count = int(row['rating_count'])
        would_buy = int(row['would_buy_count'])
        rankings.append(WineRanking(
            wine_id=row['id'],
            wine_name=_clean(row['wine_name']) or 'Unknown Wine',
            producer=_clean(row['producer']),
            wine_type=_clean(row['wine_type']),
            avg_rating=round_half_up(float(row['mean_rating']), 1),
            rating_count=count,
            would_buy_count=would_buy,
            would_buy_percent=percent(would_buy, count),
        ))
    return rankings


def _fill_stats(merged: pd.DataFrame) -> pd.DataFrame:
    merged = merged.copy()
    merged['mean_rating'] = merged['mean_rating'].astype(float).fillna(0.0)
    merged['rating_count'] = merged['rating_count'].fillna(0).astype(int)
    merged['would_buy_count'] = merged['would_buy_count'].fillna(0).astype(int)
    return merged


# =======================
# ROLLUPS
# =======================

def rating_distribution(ratings: Iterable[Mapping[str, Any]]) -> List[int]:
    """
    Histogram of ratings bucketed 1-5.

    Ratings outside the 1-5 scale are ignored, so for valid data the buckets
    sum to the number of ratings.
    """
    counts = Counter(r.get('rating') for r in ratings)
    return [counts.get(star, 0) for star in RATING_SCALE]


def rating_distribution_table(ratings: Sequence[Mapping[str, Any]]) -> List[Dict[str, int]]:
    """Histogram rows with the whole-number share of each bucket."""
    distribution = rating_distribution(ratings)
    total = len(ratings)
    return [
        {'rating': star, 'count': count, 'percent': percent(count, total)}
        for star, count in zip(RATING_SCALE, distribution)
    ]


def summarize_ratings(ratings: Sequence[Mapping[str, Any]]) -> RatingSummary:
    """Headline totals: count, distinct tasters, mean (1 dp), would-buy %."""
    values = [r['rating'] for r in ratings if r.get('rating') is not None]
    would_buy = sum(1 for r in ratings if r.get('would_buy'))
    participants = {r.get('user_id') for r in ratings if r.get('user_id')}
    return RatingSummary(
        total_ratings=len(ratings),
        total_participants=len(participants),
        average_rating=calculate_average_rating(values),
        would_buy_percent=percent(would_buy, len(ratings)),
    )


def rank_wines(
    wines: Sequence[Mapping[str, Any]],
    ratings: Sequence[Mapping[str, Any]]
) -> List[WineRanking]:
    """
    Per-wine averages for every wine, unrated wines included with zeros.

    Returns:
        Rankings sorted by average rating, highest first
    """
    wines_df = _wines_frame(wines)
    if wines_df.empty:
        return []

    stats = _per_wine_stats(_ratings_frame(ratings))
    merged = wines_df.merge(stats, how='left', left_on='id', right_on='event_wine_id')
    merged = _fill_stats(merged)
    merged = merged.sort_values('mean_rating', ascending=False, kind='stable')
    return _rankings_from(merged)


def top_wines(
    wines: Sequence[Mapping[str, Any]],
    ratings: Sequence[Mapping[str, Any]],
    limit: int = config.TOP_WINES_LIMIT,
    min_ratings: int = config.MIN_RATINGS_FOR_RANKING
) -> List[WineRanking]:
    """
    Best-rated wines, ignoring those with too few ratings to be meaningful.

    Args:
        wines: Wine rows
        ratings: Rating rows for those wines
        limit: Maximum number of wines returned
        min_ratings: Minimum ratings a wine needs to qualify (default 2)
    """
    qualified = [w for w in rank_wines(wines, ratings) if w.rating_count >= min_ratings]
    return qualified[:limit]


def top_wines_across_events(
    event_wines: Sequence[Mapping[str, Any]],
    ratings: Sequence[Mapping[str, Any]],
    limit: int = config.TOP_WINES_LIMIT,
    min_ratings: int = config.MIN_RATINGS_FOR_RANKING
) -> List[WineRanking]:
    """
    Platform-wide best wines.

    The same wine poured at several events is pooled by its master wine id,
    or by its name when it was never linked to a master record. The first
    event wine of each group represents it.
    """
    wines_df = _wines_frame(event_wines)
    if wines_df.empty:
        return []

    master_id = wines_df['wine_master_id']
    has_master = master_id.notna() & (master_id.astype(str) != '')
    wines_df['group_key'] = master_id.where(has_master, wines_df['wine_name'])

    ratings_df = _ratings_frame(ratings)
    ratings_df = ratings_df.merge(
        wines_df[['id', 'group_key']], how='inner', left_on='event_wine_id', right_on='id',
        suffixes=('_rating', '')
    )
    stats = _per_wine_stats(ratings_df, key='group_key')

    representatives = wines_df.drop_duplicates('group_key', keep='first')
    merged = _fill_stats(representatives.merge(stats, how='left', on='group_key'))
    merged = merged[merged['rating_count'] >= min_ratings]
    merged = merged.sort_values('mean_rating', ascending=False, kind='stable')
    return _rankings_from(merged.head(limit))


def wine_type_breakdown(
    wines: Sequence[Mapping[str, Any]],
    ratings: Sequence[Mapping[str, Any]]
) -> List[TypeBreakdown]:
    """Rating count and average per wine type, most-rated type first."""
    wines_df = _wines_frame(wines)
    if wines_df.empty:
        return []

    wines_df['wine_type'] = wines_df['wine_type'].fillna('unknown')
    ratings_df = _ratings_frame(ratings).merge(
        wines_df[['id', 'wine_type']], how='inner', left_on='event_wine_id', right_on='id',
        suffixes=('_rating', '')
    )

    types = list(dict.fromkeys(wines_df['wine_type']))
    counts = ratings_df.groupby('wine_type')['rating'].size()
    totals = ratings_df.groupby('wine_type')['rating'].sum()

    breakdown = [
        TypeBreakdown(
            wine_type=wine_type,
            count=int(counts.get(wine_type, 0)),
            avg_rating=safe_divide(float(totals.get(wine_type, 0)), int(counts.get(wine_type, 0))),
        )
        for wine_type in types
    ]
    breakdown.sort(key=lambda b: b.count, reverse=True)
    return breakdown


def most_divisive_wine(
    wines: Sequence[Mapping[str, Any]],
    ratings: Sequence[Mapping[str, Any]]
) -> Optional[DivisiveWine]:
    """Wine with the widest min-max rating spread among wines rated at least twice."""
    wines_df = _wines_frame(wines)
    stats = _per_wine_stats(_ratings_frame(ratings))
    if wines_df.empty or stats.empty:
        return None

    merged = wines_df.merge(stats, how='inner', left_on='id', right_on='event_wine_id')
    merged = merged[merged['rating_count'] >= config.MIN_RATINGS_FOR_RANKING]
    if merged.empty:
        return None

    merged = merged.assign(spread=merged['max_rating'] - merged['min_rating'])
    row = merged.sort_values('spread', ascending=False, kind='stable').iloc[0]
    return DivisiveWine(
        wine_id=row['id'],
        wine_name=row['wine_name'],
        producer=_clean(row['producer']),
        rating_spread=int(row['spread']),
        min_rating=int(row['min_rating']),
        max_rating=int(row['max_rating']),
    )


def top_descriptors(
    descriptor_rows: Iterable[Mapping[str, Any]],
    limit: int = config.TOP_DESCRIPTORS_LIMIT
) -> List[Dict[str, Any]]:
    """Most frequent flavor descriptors from `user_wine_descriptors` rows."""
    counts = Counter(
        ((row.get('descriptors') or {}).get('name'))
        for row in descriptor_rows
    )
    counts.pop(None, None)
    return [{'name': name, 'count': count} for name, count in counts.most_common(limit)]


def recent_activity(
    wines: Sequence[Mapping[str, Any]],
    ratings: Sequence[Mapping[str, Any]],
    limit: int = config.RECENT_ACTIVITY_LIMIT
) -> List[Dict[str, Any]]:
    """Latest ratings with the wine name resolved."""
    names = {w.get('id'): w.get('wine_name') for w in wines}
    latest = sorted(ratings, key=lambda r: str(r.get('created_at') or ''), reverse=True)
    return [
        {
            'id': r.get('id'),
            'wine_name': names.get(r.get('event_wine_id')) or 'Unknown Wine',
            'rating': r.get('rating'),
            'created_at': r.get('created_at'),
        }
        for r in latest[:limit]
    ]


def event_analytics(
    wines: Sequence[Mapping[str, Any]],
    ratings: Sequence[Mapping[str, Any]],
    descriptor_rows: Optional[Iterable[Mapping[str, Any]]] = None
) -> EventAnalytics:
    """
    Full analytics bundle for one or more events.

    Args:
        wines: Event wine rows
        ratings: Rating rows for those wines
        descriptor_rows: Optional descriptor links for those ratings
    """
    if not ratings:
        return EventAnalytics(total_wines=len(wines), wine_rankings=rank_wines(wines, ratings))

    summary = summarize_ratings(ratings)
    analytics = EventAnalytics(
        total_ratings=summary.total_ratings,
        total_participants=summary.total_participants,
        total_wines=len(wines),
        average_rating=summary.average_rating,
        would_buy_percent=summary.would_buy_percent,
        average_wines_rated_per_user=round_half_up(
            safe_divide(summary.total_ratings, summary.total_participants), 1
        ),
        rating_distribution=rating_distribution(ratings),
        wine_rankings=rank_wines(wines, ratings),
        top_wines=top_wines(wines, ratings),
        type_breakdown=wine_type_breakdown(wines, ratings),
        most_divisive=most_divisive_wine(wines, ratings),
        top_descriptors=top_descriptors(descriptor_rows or []),
        recent_activity=recent_activity(wines, ratings),
    )

    logger.info(
        f"Analytics: {analytics.total_ratings} ratings from "
        f"{analytics.total_participants} tasters across {analytics.total_wines} wines"
    )
    return analytics


def platform_stats(
    master_count: int,
    event_wine_count: int,
    event_count: int,
    ratings: Sequence[Mapping[str, Any]]
) -> PlatformStats:
    """Curator dashboard totals."""
    summary = summarize_ratings(ratings)
    return PlatformStats(
        total_master_wines=master_count or 0,
        total_event_wines=event_wine_count or 0,
        total_events=event_count or 0,
        total_ratings=summary.total_ratings,
        average_rating=summary.average_rating,
        would_buy_percent=summary.would_buy_percent,
    )


def count_by(rows: Iterable[Mapping[str, Any]], key: str, default: str = 'Unknown') -> List[Dict[str, Any]]:
    """Row counts per value of a column, most common first."""
    counts = Counter((row.get(key) or default) for row in rows)
    return [{key: value, 'count': count} for value, count in counts.most_common()]


# =======================
# PERSONAL BREAKDOWNS
# =======================

def personal_breakdown(ratings: Sequence[Mapping[str, Any]], attribute: str) -> List[Breakdown]:
    """
    Group a user's ratings by an attribute of the rated wine.

    Args:
        ratings: Rating rows with the joined `event_wines` record
        attribute: Wine column such as 'wine_type', 'region' or 'country'
    """
    grouped: Dict[str, List[float]] = {}
    for r in ratings:
        wine = r.get('event_wines') or {}
        value = wine.get(attribute)
        if value and r.get('rating') is not None:
            grouped.setdefault(value, []).append(r['rating'])

    breakdown = [
        Breakdown(key=key, count=len(values), avg_rating=sum(values) / len(values))
        for key, values in grouped.items()
    ]
    breakdown.sort(key=lambda b: b.count, reverse=True)
    return breakdown


def favorite(breakdown: Sequence[Breakdown], min_ratings: int = config.MIN_RATINGS_FOR_RANKING) -> str:
    """
    Highest-average entry among those rated at least `min_ratings` times.

    Falls back to the most-rated entry when none qualifies.
    """
    qualified = [b for b in breakdown if b.count >= min_ratings]
    if not qualified:
        return breakdown[0].key if breakdown else ''
    return max(qualified, key=lambda b: b.avg_rating).key


FAVORITE_FILTERS = ('all', 'would_buy', 'top_rated')
FAVORITE_SORTS = ('recent', 'rating', 'name')


def favorite_wines(
    ratings: Sequence[Mapping[str, Any]],
    kind: str = 'all',
    sort: str = 'recent'
) -> List[Mapping[str, Any]]:
    """
    A user's rated wines for the favourites list.

    Args:
        ratings: Rating rows with the joined `event_wines` record
        kind: 'would_buy' keeps wines marked as a purchase, 'top_rated' keeps
              4 stars and up, 'all' keeps everything
        sort: 'recent' (newest first), 'rating' (highest first) or 'name'
    """
    if kind not in FAVORITE_FILTERS:
        raise ValueError(f"Unknown favourites filter: {kind}")
    if sort not in FAVORITE_SORTS:
        raise ValueError(f"Unknown favourites sort: {sort}")

    if kind == 'would_buy':
        rows = [r for r in ratings if r.get('would_buy')]
    elif kind == 'top_rated':
        rows = [r for r in ratings if (r.get('rating') or 0) >= config.FAVORITE_MIN_RATING]
    else:
        rows = list(ratings)

    if sort == 'rating':
        return sorted(rows, key=lambda r: r.get('rating') or 0, reverse=True)
    if sort == 'name':
        return sorted(rows, key=lambda r: str((r.get('event_wines') or {}).get('wine_name') or '').lower())
    return sorted(rows, key=lambda r: str(r.get('created_at') or ''), reverse=True)
