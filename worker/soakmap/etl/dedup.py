"""Pre-insert duplicate detection against springs already in the store.

A candidate is a duplicate when:

* its ``source_id`` or ``slug`` is already stored (a repeated run of the same source),
* an earlier candidate of the same batch already claimed its slug, or
* a stored spring within ``radius_miles`` has a matching name, or sits closer
  than ``match_miles`` regardless of name.

Coordinates alone miss duplicates whose source coordinates are imprecise, and
names alone collide across the many springs called "Hot Springs", so a name
only counts when the two springs are also near each other.

The proximity cache lives for one run: the orchestrator calls ``clear_cache``
once the write phase is over.
"""

from __future__ import annotations

import logging
import math
import re
from difflib import SequenceMatcher
from typing import Dict, List, Optional, Set, Tuple

from soakmap.models import DedupResult, Duplicate, ExistingSpring, SpringRecord

logger = logging.getLogger(__name__)

EARTH_RADIUS_MILES = 3958.8
CACHE_PRECISION = 3


def normalize_name(name: str) -> str:
    """Lowercase, drop generic suffixes and punctuation, collapse whitespace."""
    normalized = (name or "").lower()
    normalized = re.sub(r"['’`]", "", normalized)
    normalized = re.sub(r"[^a-z0-9]+", " ", normalized).strip()
    normalized = re.sub(r"\s+(hot\s+)?springs?$", "", normalized)
    normalized = re.sub(r"\s+area$", "", normalized)
    return normalized.strip()


def names_match(a: str, b: str, threshold: float) -> bool:
    norm_a, norm_b = normalize_name(a), normalize_name(b)
    if not norm_a or not norm_b:
        return False
    if norm_a == norm_b:
        return True
    return SequenceMatcher(None, norm_a, norm_b).ratio() >= threshold


def haversine_miles(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_MILES * math.asin(math.sqrt(a))


class Deduplicator:
    def __init__(
        self,
        store,
        *,
        radius_miles: float = 1.0,
        match_miles: float = 0.1,
        name_similarity: float = 0.85,
    ) -> None:
        self.store = store
        self.radius_miles = radius_miles
        self.match_miles = match_miles
        self.name_similarity = name_similarity
        self._nearby_cache: Dict[Tuple[float, float], List[ExistingSpring]] = {}

    def clear_cache(self) -> None:
        self._nearby_cache.clear()

    def _nearby(self, lat: float, lng: float) -> List[ExistingSpring]:
        key = (round(lat, CACHE_PRECISION), round(lng, CACHE_PRECISION))
        if key not in self._nearby_cache:
            self._nearby_cache[key] = self.store.nearby(lat, lng, self.radius_miles)
        return self._nearby_cache[key]

    def find_match(self, record: SpringRecord, existing: List[ExistingSpring]) -> Optional[Tuple[ExistingSpring, str]]:
        for spring in existing:
            if names_match(record.name, spring.name, self.name_similarity):
                return spring, "name"
            if haversine_miles(record.lat, record.lng, spring.lat, spring.lng) < self.match_miles:
                return spring, "proximity"
        return None

    def filter_new(self, records: List[SpringRecord]) -> DedupResult:
        result = DedupResult()
        stored_slugs, stored_ids = self.store.existing_keys(
            [record.slug for record in records],
            [record.source_id for record in records],
        )
        claimed: Set[str] = set()

        for record in records:
            if record.source_id in stored_ids:
                result.duplicates.append(Duplicate(record, None, "source_id"))
                continue
            if record.slug in stored_slugs:
                result.duplicates.append(Duplicate(record, None, "slug"))
                continue
            if record.slug in claimed:
                result.duplicates.append(Duplicate(record, None, "batch"))
                continue

            match = self.find_match(record, self._nearby(record.lat, record.lng))
            if match:
                existing, reason = match
                logger.debug("%s duplicates %s (%s)", record.slug, existing.slug, reason)
                result.duplicates.append(Duplicate(record, existing, reason))
                continue

            claimed.add(record.slug)
            result.new.append(record)

        return result
