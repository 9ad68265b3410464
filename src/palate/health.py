"""
Data health checks for the curator dashboard.

Each check scans backend rows for one kind of inconsistency (incomplete or
duplicated master wines, dangling links, stale guest accounts, drifting
usage counts) and reports a status with the offending records.
"""

import logging
from dataclasses import asdict, dataclass, field, is_dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from supabase import Client

from palate import config
from palate.constants import HealthStatus, Tables
from palate.error_handling import raise_backend_error
from palate.utils import parse_timestamp, percent, utcnow

logger = logging.getLogger(__name__)


@dataclass
class HealthCheck:
    """Result of one data health check."""
    id: str
    name: str
    description: str
    status: HealthStatus
    count: int
    items: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class DuplicateName:
    """Master wines sharing a name once case and padding are ignored."""
    wine_name: str
    producer: Optional[str]
    ids: List[str]

    @property
    def count(self) -> int:
        return len(self.ids)


def _check(
    check_id: str,
    name: str,
    description: str,
    items: Sequence[Any],
    severity: HealthStatus = HealthStatus.WARNING
) -> HealthCheck:
    return HealthCheck(
        id=check_id,
        name=name,
        description=description,
        status=HealthStatus.PASS if not items else severity,
        count=len(items),
        items=[asdict(item) if is_dataclass(item) else dict(item) for item in items],
    )


# =======================
# INDIVIDUAL CHECKS
# =======================

def incomplete_master_wines(masters: Iterable[Mapping[str, Any]]) -> List[Mapping[str, Any]]:
    """Master wines missing a producer or a type."""
    return [m for m in masters if not m.get('producer') or not m.get('wine_type')]


def duplicate_master_names(masters: Iterable[Mapping[str, Any]]) -> List[DuplicateName]:
    """Groups of master wines with the same lower-cased name, in first-seen order."""
    groups: Dict[str, DuplicateName] = {}
    for wine in masters:
        key = str(wine.get('wine_name') or '').strip().lower()
        if key in groups:
            groups[key].ids.append(wine['id'])
        else:
            groups[key] = DuplicateName(wine_name=key, producer=wine.get('producer'), ids=[wine['id']])
    return [group for group in groups.values() if group.count > 1]


def orphaned_event_wines(event_wines: Iterable[Mapping[str, Any]]) -> List[Mapping[str, Any]]:
    return [w for w in event_wines if not w.get('event_id')]


def orphaned_ratings(
    ratings: Iterable[Mapping[str, Any]],
    event_wines: Iterable[Mapping[str, Any]]
) -> List[Mapping[str, Any]]:
    """Ratings whose event wine no longer exists."""
    wine_ids = {w['id'] for w in event_wines}
    return [r for r in ratings if r.get('event_wine_id') not in wine_ids]


def stale_temp_accounts(
    profiles: Iterable[Mapping[str, Any]],
    now: datetime,
    days: int = config.STALE_TEMP_ACCOUNT_DAYS
) -> List[Mapping[str, Any]]:
    """Temporary accounts created more than `days` ago."""
    cutoff = now - timedelta(days=days)
    stale = []
    for profile in profiles:
        created_at = parse_timestamp(profile.get('created_at'))
        if profile.get('is_temp_account') and created_at is not None and created_at < cutoff:
            stale.append(profile)
    return stale


def usage_mismatches(
    masters: Iterable[Mapping[str, Any]],
    event_wines: Iterable[Mapping[str, Any]]
) -> List[Dict[str, Any]]:
    """
    Used master wines whose usage count differs from their event-wine links.

    Returns:
        One entry per mismatch with the stored and the actual count
    """
    actual: Dict[str, int] = {}
    for wine in event_wines:
        master_id = wine.get('wine_master_id')
        if master_id:
            actual[master_id] = actual.get(master_id, 0) + 1

    mismatches = []
    for master in masters:
        stored = master.get('usage_count') or 0
        if stored > 0 and actual.get(master['id'], 0) != stored:
            mismatches.append({
                'id': master['id'],
                'wine_name': master.get('wine_name'),
                'usage_count': stored,
                'actual': actual.get(master['id'], 0),
            })
    return mismatches


def empty_events(
    events: Iterable[Mapping[str, Any]],
    event_wines: Iterable[Mapping[str, Any]]
) -> List[Mapping[str, Any]]:
    """Live events that have no wines yet."""
    with_wines = {w.get('event_id') for w in event_wines}
    return [e for e in events if not e.get('is_deleted') and e['id'] not in with_wines]


# =======================
# DASHBOARD
# =======================

def build_health_checks(
    masters: Sequence[Mapping[str, Any]],
    event_wines: Sequence[Mapping[str, Any]],
    ratings: Sequence[Mapping[str, Any]],
    profiles: Sequence[Mapping[str, Any]],
    events: Sequence[Mapping[str, Any]],
    now: datetime
) -> List[HealthCheck]:
    """Run every check over already-loaded rows."""
    return [
        _check('incomplete-wines', 'Incomplete Wine Records',
               'Master wines missing producer or type', incomplete_master_wines(masters)),
        _check('duplicate-wines', 'Potential Duplicate Wines',
               'Master wines with same name', duplicate_master_names(masters)),
        _check('orphaned-event-wines', 'Orphaned Event Wines',
               'Event wines not linked to an event', orphaned_event_wines(event_wines),
               severity=HealthStatus.FAIL),
        _check('old-temp-accounts', 'Old Temporary Accounts',
               f'Temp accounts older than {config.STALE_TEMP_ACCOUNT_DAYS} days',
               stale_temp_accounts(profiles, now)),
        _check('orphaned-ratings', 'Orphaned Ratings',
               'Ratings linked to deleted wines', orphaned_ratings(ratings, event_wines)),
        _check('usage-mismatch', 'Usage Count Accuracy',
               'Master wines with incorrect usage counts', usage_mismatches(masters, event_wines)),
        _check('empty-events', 'Events Without Wines',
               'Active events with no wines added', empty_events(events, event_wines)),
    ]


def run_health_checks(sb: Client, now: Optional[datetime] = None) -> List[HealthCheck]:
    """Load the rows the checks need and run them all."""
    try:
        masters = (
            sb.table(Tables.MASTER_WINES)
            .select("id, wine_name, producer, wine_type, usage_count")
            .execute()
        ).data or []
        event_wines = (
            sb.table(Tables.EVENT_WINES)
            .select("id, event_id, wine_master_id")
            .execute()
        ).data or []
        ratings = (
            sb.table(Tables.RATINGS)
            .select("id, event_wine_id")
            .execute()
        ).data or []
        profiles = (
            sb.table(Tables.PROFILES)
            .select("id, display_name, is_temp_account, created_at")
            .eq("is_temp_account", True)
            .execute()
        ).data or []
        events = (
            sb.table(Tables.EVENTS)
            .select("id, event_name, event_code, is_deleted")
            .eq("is_deleted", False)
            .execute()
        ).data or []
    except Exception as e:
        raise_backend_error(e, "run health checks")

    checks = build_health_checks(masters, event_wines, ratings, profiles, events, now or utcnow())
    failing = [c.id for c in checks if c.status != HealthStatus.PASS]
    logger.info(f"Health checks: {len(checks) - len(failing)}/{len(checks)} passing {failing}")
    return checks


def health_score(checks: Sequence[HealthCheck]) -> int:
    """Percentage of passing checks; 100 when nothing was checked."""
    if not checks:
        return 100
    passing = sum(1 for c in checks if c.status == HealthStatus.PASS)
    return percent(passing, len(checks))
