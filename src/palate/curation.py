"""
Curator review of user-submitted wines.

Pending submissions are checked against the master list for likely
duplicates. The curator then approves a submission as a new master wine,
merges it into an existing one, or rejects it.
"""

import logging
from typing import Any, Dict, List, Mapping

from supabase import Client

from palate import config
from palate.constants import Tables, UserWineStatus
from palate.error_handling import BackendError, raise_backend_error
from palate.similarity import PotentialDuplicate, build_search_filter, find_potential_duplicates
from palate.wines_repo import increment_master_usage

logger = logging.getLogger(__name__)


def find_duplicates_for_pending(
    sb: Client,
    pending_wines: List[Mapping[str, Any]]
) -> Dict[str, List[PotentialDuplicate]]:
    """
    Likely master duplicates for each pending submission.

    Returns:
        Submission id -> duplicates above the similarity threshold; wines
        without any likely duplicate are left out
    """
    duplicates: Dict[str, List[PotentialDuplicate]] = {}
    for wine in pending_wines:
        try:
            res = (
                sb.table(Tables.MASTER_WINES)
                .select("*")
                .or_(build_search_filter(wine))
                .limit(config.DUPLICATE_SEARCH_LIMIT)
                .execute()
            )
        except Exception as e:
            raise_backend_error(e, "search for duplicates")

        matches = find_potential_duplicates(wine, res.data or [])
        if matches:
            duplicates[wine["id"]] = matches

    logger.info(f"Duplicate check: {len(duplicates)}/{len(pending_wines)} pending wines have candidates")
    return duplicates


def approve_user_wine(sb: Client, user_wine: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Promote a submission to a new master wine and mark it merged.

    Returns:
        The new master wine row
    """
    master_row = {
        "wine_name": user_wine["wine_name"],
        "producer": user_wine.get("producer") or None,
        "vintage": user_wine.get("vintage") or None,
        "wine_type": user_wine.get("wine_type") or "red",
        "region": user_wine.get("region") or None,
        "country": user_wine.get("country") or None,
        "price_point": user_wine.get("price_point") or None,
        "alcohol_content": user_wine.get("alcohol_content") or None,
        "default_notes": user_wine.get("personal_notes") or None,
        "usage_count": 1,
    }

    try:
        res = sb.table(Tables.MASTER_WINES).insert(master_row).execute()
    except Exception as e:
        raise_backend_error(e, "approve wine")

    master = (res.data or [None])[0]
    if not master or not master.get("id"):
        logger.error(f"Master insert for '{user_wine['wine_name']}' returned no row")
        raise BackendError("Failed to approve wine")

    try:
        _mark(sb, user_wine["id"], UserWineStatus.MERGED, master["id"])
    except Exception as e:
        raise_backend_error(e, "approve wine")

    logger.info(f"Approved '{user_wine['wine_name']}' as master {master['id']}")
    return master


def merge_user_wine(sb: Client, user_wine: Mapping[str, Any], master: Mapping[str, Any]) -> int:
    """
    Link a submission to an existing master wine.

    Returns:
        The master's new usage count
    """
    try:
        _mark(sb, user_wine["id"], UserWineStatus.MERGED, master["id"])
    except Exception as e:
        raise_backend_error(e, "merge wine")

    usage = increment_master_usage(sb, dict(master))
    logger.info(f"Merged '{user_wine.get('wine_name')}' into master {master['id']} (used {usage}x)")
    return usage


def reject_user_wine(sb: Client, user_wine_id: str) -> None:
    try:
        _mark(sb, user_wine_id, UserWineStatus.REJECTED)
    except Exception as e:
        raise_backend_error(e, "reject wine")
    logger.info(f"Rejected user wine {user_wine_id}")


def pending_count(sb: Client) -> int:
    """Number of submissions waiting for review."""
    try:
        res = (
            sb.table(Tables.USER_WINES)
            .select("id", count="exact")
            .eq("status", UserWineStatus.PENDING.value)
            .execute()
        )
    except Exception as e:
        raise_backend_error(e, "count pending wines")
    return res.count or 0


def _mark(sb: Client, user_wine_id: str, status: UserWineStatus, master_id: str = None) -> None:
    changes: Dict[str, Any] = {"status": status.value}
    if master_id:
        changes["wine_master_id"] = master_id
    sb.table(Tables.USER_WINES).update(changes).eq("id", user_wine_id).execute()
