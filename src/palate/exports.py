"""
CSV exports and imports.

Attendees download their own ratings; admins download event reports in
three shapes (one row per wine, per taster, or per rating) and can bulk
import wines from a CSV template.
"""

import logging
import re
from typing import Any, Dict, IO, List, Mapping, Sequence, Tuple, Union

import pandas as pd
from pydantic import ValidationError

from palate.schema import WineForm
from palate.utils import format_date, percent, round_half_up

logger = logging.getLogger(__name__)

RATINGS_COLUMNS = ['Wine Name', 'Producer', 'Vintage', 'Type', 'Region', 'Rating', 'Would Buy', 'Notes', 'Date']

IMPORT_COLUMNS = [
    'wine_name', 'producer', 'vintage', 'wine_type', 'region', 'country',
    'price_point', 'alcohol_content', 'sommelier_notes', 'tasting_order',
]
IMPORT_TEMPLATE = ','.join(IMPORT_COLUMNS) + '\nChâteau Example,Example Estate,2019,red,Bordeaux,France,Premium,13.5,Ripe plum,1\n'


def to_csv(df: pd.DataFrame) -> str:
    return df.to_csv(index=False)


def report_filename(event_name: str, kind: str) -> str:
    """Lower-case, dash-separated file name such as 'spring-tasting-wines.csv'."""
    stem = re.sub(r'[^a-z0-9]+', '-', f"{event_name}-{kind}".lower()).strip('-')
    return f"{stem}.csv"


def ratings_frame(ratings: Sequence[Mapping[str, Any]]) -> pd.DataFrame:
    """A user's ratings (with joined `event_wines`) as the download table."""
    rows = []
    for r in ratings:
        wine = r.get('event_wines') or {}
        rows.append({
            'Wine Name': wine.get('wine_name', ''),
            'Producer': wine.get('producer') or '',
            'Vintage': wine.get('vintage') or '',
            'Type': wine.get('wine_type') or '',
            'Region': wine.get('region') or '',
            'Rating': r.get('rating'),
            'Would Buy': 'Yes' if r.get('would_buy') else 'No',
            'Notes': r.get('personal_notes') or '',
            'Date': format_date(r.get('created_at'), '%Y-%m-%d'),
        })
    return pd.DataFrame(rows, columns=RATINGS_COLUMNS)


def ratings_csv(ratings: Sequence[Mapping[str, Any]]) -> str:
    return to_csv(ratings_frame(ratings))


def wine_report(
    wines: Sequence[Mapping[str, Any]],
    ratings: Sequence[Mapping[str, Any]],
    names: Mapping[str, str]
) -> pd.DataFrame:
    """
    One row per wine with aggregated ratings and attributed comments.

    Args:
        wines: Event wines in tasting order
        ratings: Ratings of those wines
        names: Profile id -> display name
    """
    rows = []
    for wine in wines:
        wine_ratings = [r for r in ratings if r.get('event_wine_id') == wine.get('id')]
        values = [r['rating'] for r in wine_ratings]
        would_buy = sum(1 for r in wine_ratings if r.get('would_buy'))
        comments = ' | '.join(
            f"[{names.get(r.get('user_id')) or 'Anon'}]: {r['personal_notes']}"
            for r in wine_ratings if r.get('personal_notes')
        )
        rows.append({
            'Tasting Order': wine.get('tasting_order'),
            'Wine Name': wine.get('wine_name'),
            'Producer': wine.get('producer') or '',
            'Vintage': wine.get('vintage') or '',
            'Type': wine.get('wine_type'),
            'Region': wine.get('region') or '',
            'Country': wine.get('country') or '',
            'Total Ratings': len(values),
            'Avg Rating': f"{round_half_up(sum(values) / len(values), 1):.1f}" if values else 'N/A',
            'Would Buy Count': would_buy,
            'Would Buy %': f"{percent(would_buy, len(values))}%",
            'Highest': max(values) if values else 'N/A',
            'Lowest': min(values) if values else 'N/A',
            'Comments': comments,
        })
    return pd.DataFrame(rows)


def taster_report(
    wines: Sequence[Mapping[str, Any]],
    ratings: Sequence[Mapping[str, Any]],
    profiles: Mapping[str, Mapping[str, Any]]
) -> pd.DataFrame:
    """One row per taster with their averages and favourite wine."""
    columns = ['User Name', 'Email', 'Wines Rated', 'Avg Rating', 'Would Buy Count',
               'Top Rated Wine', 'Top Rating', 'Range']
    df = pd.DataFrame(list(ratings))
    if df.empty:
        return pd.DataFrame(columns=columns)

    wine_names = {w.get('id'): w.get('wine_name') for w in wines}
    rows = []
    for user_id, group in df.groupby('user_id', sort=False):
        profile = profiles.get(user_id) or {}
        top = group.sort_values('rating', ascending=False, kind='stable').iloc[0]
        would_buy = int(group['would_buy'].fillna(False).astype(bool).sum()) if 'would_buy' in group else 0
        rows.append({
            'User Name': profile.get('display_name') or 'Anon',
            'Email': profile.get('eventbrite_email') or '',
            'Wines Rated': len(group),
            'Avg Rating': f"{round_half_up(group['rating'].mean(), 1):.1f}",
            'Would Buy Count': would_buy,
            'Top Rated Wine': wine_names.get(top['event_wine_id']) or 'N/A',
            'Top Rating': int(top['rating']),
            'Range': f"{int(group['rating'].min())} - {int(group['rating'].max())}",
        })
    return pd.DataFrame(rows, columns=columns)


def detailed_report(
    wines: Sequence[Mapping[str, Any]],
    ratings: Sequence[Mapping[str, Any]],
    names: Mapping[str, str]
) -> pd.DataFrame:
    """Every rating as its own row."""
    wines_by_id = {w.get('id'): w for w in wines}
    rows = []
    for r in ratings:
        wine = wines_by_id.get(r.get('event_wine_id')) or {}
        rows.append({
            'Wine Name': wine.get('wine_name') or 'Unknown Wine',
            'Producer': wine.get('producer') or '',
            'Taster': names.get(r.get('user_id')) or 'Anon',
            'Rating': r.get('rating'),
            'Would Buy': 'Yes' if r.get('would_buy') else 'No',
            'Notes': r.get('personal_notes') or '',
            'Date': format_date(r.get('created_at'), '%Y-%m-%d'),
        })
    return pd.DataFrame(rows, columns=['Wine Name', 'Producer', 'Taster', 'Rating', 'Would Buy', 'Notes', 'Date'])


def parse_wine_import(source: Union[str, IO]) -> Tuple[List[WineForm], List[str]]:
    """
    Read wines from a CSV in the import template format.

    Rows that fail validation are reported and skipped.

    Returns:
        (valid wine forms, "Row N: problem" messages)

    Raises:
        ValueError: The file lacks the wine_name or wine_type column
    """
    df = pd.read_csv(source, dtype=str, keep_default_na=False)
    df.columns = [str(c).strip().lower() for c in df.columns]
    missing = {'wine_name', 'wine_type'} - set(df.columns)
    if missing:
        raise ValueError("CSV must have wine_name and wine_type columns")

    forms: List[WineForm] = []
    errors: List[str] = []
    for index, record in enumerate(df.to_dict('records'), start=2):
        data: Dict[str, Any] = {
            key: value.strip() for key, value in record.items()
            if key in IMPORT_COLUMNS and value and value.strip()
        }
        if 'wine_type' in data:
            data['wine_type'] = data['wine_type'].lower()
        try:
            forms.append(WineForm(**data))
        except ValidationError as e:
            problems = '; '.join(f"{'.'.join(map(str, d['loc']))}: {d['msg']}" for d in e.errors())
            errors.append(f"Row {index}: {problems}")

    logger.info(f"Wine import: {len(forms)} valid rows, {len(errors)} rejected")
    return forms, errors
