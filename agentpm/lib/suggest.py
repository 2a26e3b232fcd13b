"""
"Did you mean?" suggestions for unknown phase, task and test IDs.

IDs share a phase prefix ("1A", "1A_2", "1A_T3"), so a candidate from the
same phase as the mistyped ID wins over an equally similar one elsewhere.
"""

import re
from difflib import SequenceMatcher
from typing import Iterable, Optional

from agentpm.errors import NotFoundError

MIN_RATIO = 0.6

# "1a-t1", "1A.T1" and "1A_T1" name the same test
_SEPARATORS = re.compile(r"[\s\-.]+")


def normalize_id(value: str) -> str:
    return _SEPARATORS.sub("_", value.strip()).upper()


def _phase_of(entity_id: str) -> str:
    return entity_id.split("_", 1)[0]


def find_similar(query: str, candidates: Iterable[str], threshold: float = MIN_RATIO) -> Optional[str]:
    """
    Find the candidate ID closest to query.

    The query itself is never suggested. Case and separator slips ("1a-t1")
    match exactly after normalization.

    Returns:
        Best match if its similarity reaches threshold, None otherwise
    """
    if not query:
        return None

    wanted = normalize_id(query)
    wanted_phase = _phase_of(wanted)
    best_match = None
    best_key = (threshold, False)

    for candidate in candidates:
        if candidate == query:
            continue
        normalized = normalize_id(candidate)
        ratio = 1.0 if normalized == wanted else SequenceMatcher(None, wanted, normalized).ratio()
        key = (ratio, _phase_of(normalized) == wanted_phase)
        if key > best_key or (best_match is None and ratio >= threshold):
            best_key = key
            best_match = candidate

    return best_match


def not_found(kind: str, entity_id: str, candidates: Iterable[str]) -> NotFoundError:
    """NotFoundError for entity_id, carrying the closest known ID if any."""
    return NotFoundError(kind, entity_id, find_similar(entity_id, candidates))
