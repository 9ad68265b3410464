"""
Duplicate-wine detection for curator review.

A submitted wine is compared with master wines that share a name or producer
substring. Each field contributes only when both wines carry it, so sparse
submissions are not penalized for what they leave out:

    score = sum(weight for matching fields) / sum(weight for comparable fields)
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from pydantic import BaseModel

from palate import config
from palate.constants import SimilarityWeights

logger = logging.getLogger(__name__)

WineRecord = Union[Mapping[str, Any], BaseModel]


@dataclass
class PotentialDuplicate:
    """A master wine that may be the same bottle as a submission."""
    wine: Dict[str, Any]
    similarity: float  # 0-1

    @property
    def percent(self) -> int:
        return round(self.similarity * 100)


def _as_dict(record: WineRecord) -> Dict[str, Any]:
    if isinstance(record, BaseModel):
        return record.model_dump()
    return dict(record)


def _text(value: Any) -> Optional[str]:
    """Lower-cased text, or None when the field is absent or blank."""
    if value is None:
        return None
    text = str(value).strip().lower()
    return text or None


def _name_matches(a: str, b: str) -> bool:
    return a in b or b in a


def calculate_similarity(candidate: WineRecord, master: WineRecord) -> float:
    """
    Score how likely two wine records describe the same wine.

    Args:
        candidate: Submitted wine (wine_name, producer, vintage, region)
        master: Master wine with the same fields

    Returns:
        Similarity in [0, 1]; 0 when no field is comparable
    """
    left, right = _as_dict(candidate), _as_dict(master)

    comparisons = [
        ('wine_name', SimilarityWeights.WINE_NAME, _name_matches),
        ('producer', SimilarityWeights.PRODUCER, str.__eq__),
        ('vintage', SimilarityWeights.VINTAGE, str.__eq__),
        ('region', SimilarityWeights.REGION, str.__eq__),
    ]

    score = 0.0
    total = 0.0
    for field, weight, matches in comparisons:
        a, b = _text(left.get(field)), _text(right.get(field))
        if a is None or b is None:
            continue
        total += weight
        if matches(a, b):
            score += weight

    if total == 0:
        return 0.0
    return score / total


def find_potential_duplicates(
    candidate: WineRecord,
    masters: Iterable[WineRecord],
    threshold: float = config.DUPLICATE_THRESHOLD
) -> List[PotentialDuplicate]:
    """
    Score master candidates and keep the likely duplicates.

    Candidates scoring at or below the threshold are dropped. The rest are
    sorted by descending similarity; equal scores keep their input order.
    """
    scored = [
        PotentialDuplicate(wine=_as_dict(master), similarity=calculate_similarity(candidate, master))
        for master in masters
    ]
    duplicates = [d for d in scored if d.similarity > threshold]
    duplicates.sort(key=lambda d: d.similarity, reverse=True)

    logger.debug(
        f"{len(duplicates)}/{len(scored)} master wines above {threshold} "
        f"for '{_as_dict(candidate).get('wine_name')}'"
    )
    return duplicates


def build_search_filter(candidate: WineRecord) -> str:
    """
    PostgREST `or` filter pre-selecting masters by name or producer substring.

    Characters with meaning in the filter grammar are stripped from the terms.
    """
    wine = _as_dict(candidate)

    def term(value: Any) -> str:
        text = str(value or '').strip()
        for char in ',()%*':
            text = text.replace(char, ' ')
        return text.strip()

    clauses = [f"wine_name.ilike.%{term(wine.get('wine_name'))}%"]
    producer = term(wine.get('producer'))
    if producer:
        clauses.append(f"producer.ilike.%{producer}%")
    return ','.join(clauses)
