"""Core data models shared by the spring ingestion pipeline."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

SPRING_TYPES = ("hot", "warm", "cold")
EXPERIENCE_TYPES = ("resort", "primitive", "hybrid")
ACCESS_DIFFICULTIES = ("drive_up", "short_walk", "moderate_hike", "difficult_hike")
FEE_TYPES = ("free", "paid", "donation", "unknown")
CONFIDENCE_LEVELS = ("high", "medium", "low")

STATE_CODES = frozenset(
    """
    AL AK AZ AR CA CO CT DE FL GA HI ID IL IN IA KS KY LA ME MD
    MA MI MN MS MO MT NE NV NH NJ NM NY NC ND OH OK OR PA RI SC
    SD TN TX UT VT VA WA WV WI WY
    """.split()
)

_SLUG_RE = re.compile(r"^[a-z0-9-]+$")


@dataclass(slots=True)
class CandidateRecord:
    """Raw attributes scraped from one listing page, before classification."""

    name: str
    url: str
    lat: Optional[float] = None
    lng: Optional[float] = None
    temp_f: Optional[int] = None
    description: str = ""
    access_info: str = ""
    fee_info: str = ""
    facilities: str = ""
    is_commercial: bool = False

    @property
    def has_coordinates(self) -> bool:
        return self.lat is not None and self.lng is not None


@dataclass(slots=True)
class SpringRecord:
    """Canonical, storage-ready spring."""

    name: str
    slug: str
    state: str
    lat: float
    lng: float
    spring_type: str
    experience_type: str
    access_difficulty: str
    fee_type: str
    description: str
    source: str
    source_id: str
    temp_f: Optional[int] = None
    confidence: str = "medium"
    enrichment_status: str = "pending"

    @property
    def location(self) -> str:
        return f"POINT({self.lng} {self.lat})"

    def to_row(self) -> Dict[str, Any]:
        """Column values for the ``springs`` table; lat/lng are derived from ``location`` there."""
        return {
            "name": self.name,
            "slug": self.slug,
            "state": self.state,
            "location": self.location,
            "spring_type": self.spring_type,
            "experience_type": self.experience_type,
            "access_difficulty": self.access_difficulty,
            "fee_type": self.fee_type,
            "temp_f": self.temp_f,
            "description": self.description,
            "confidence": self.confidence,
            "source": self.source,
            "source_id": self.source_id,
            "enrichment_status": self.enrichment_status,
        }


@dataclass(slots=True)
class ExistingSpring:
    """A row already persisted in the store, as returned by lookups."""

    id: str
    name: str
    slug: str
    state: str
    lat: float
    lng: float
    source_id: Optional[str] = None
    distance_miles: Optional[float] = None


@dataclass(slots=True)
class Duplicate:
    candidate: SpringRecord
    existing: Optional[ExistingSpring]
    reason: str


@dataclass(slots=True)
class DedupResult:
    new: List[SpringRecord] = field(default_factory=list)
    duplicates: List[Duplicate] = field(default_factory=list)


@dataclass(slots=True)
class WriteResult:
    inserted: int = 0
    errors: int = 0
    skipped: int = 0

    def merge(self, other: "WriteResult") -> None:
        self.inserted += other.inserted
        self.errors += other.errors
        self.skipped += other.skipped


def validate_spring(record: SpringRecord) -> List[str]:
    """Return a list of human readable problems; empty when the record can be stored."""
    problems: List[str] = []

    if not record.name or len(record.name) > 200:
        problems.append("name must be 1-200 characters")
    if not record.slug or len(record.slug) > 200 or not _SLUG_RE.match(record.slug):
        problems.append("slug must be 1-200 characters of [a-z0-9-]")
    if record.state not in STATE_CODES:
        problems.append(f"unknown state {record.state!r}")
    if not -90 <= record.lat <= 90:
        problems.append(f"lat {record.lat} out of range")
    if not -180 <= record.lng <= 180:
        problems.append(f"lng {record.lng} out of range")

    for attr, allowed in (
        ("spring_type", SPRING_TYPES),
        ("experience_type", EXPERIENCE_TYPES),
        ("access_difficulty", ACCESS_DIFFICULTIES),
        ("fee_type", FEE_TYPES),
        ("confidence", CONFIDENCE_LEVELS),
    ):
        value = getattr(record, attr)
        if value not in allowed:
            problems.append(f"{attr} {value!r} not in {allowed}")

    if not record.description or len(record.description) > 2000:
        problems.append("description must be 1-2000 characters")
    if record.temp_f is not None and not (isinstance(record.temp_f, int) and 32 <= record.temp_f <= 212):
        problems.append(f"temp_f {record.temp_f!r} out of range")
    if len(record.source) > 100 or len(record.source_id) > 100:
        problems.append("source and source_id must be at most 100 characters")

    return problems
