"""Per-site scraping profiles.

A profile carries everything that is specific to one listing site: where its
sitemap lives, which sitemap URLs are spring pages, the region the springs
must fall inside, and the defaults used when a page leaves a field blank.
"""

from dataclasses import dataclass
from typing import Dict, Tuple

from soakmap.core.config import ConfigError


@dataclass(frozen=True)
class SourceProfile:
    source_name: str
    sitemap_url: str
    state: str
    region_name: str
    lat_bounds: Tuple[float, float]
    lng_bounds: Tuple[float, float]
    link_keywords: Tuple[str, ...]
    marketing_words: Tuple[str, ...] = ()
    confidence: str = "medium"

    def in_bounds(self, lat: float, lng: float) -> bool:
        lat_min, lat_max = self.lat_bounds
        lng_min, lng_max = self.lng_bounds
        return lat_min <= lat <= lat_max and lng_min <= lng <= lng_max

    @property
    def abs_lng_range(self) -> Tuple[float, float]:
        """Longitude magnitudes of the region, smallest first."""
        low, high = sorted(abs(value) for value in self.lng_bounds)
        return low, high


SOAKOREGON = SourceProfile(
    source_name="soakoregon",
    sitemap_url="https://soakoregon.com/sitemap-1.xml",
    state="OR",
    region_name="Oregon",
    lat_bounds=(41.0, 47.0),
    lng_bounds=(-125.0, -116.0),
    link_keywords=("hot-springs", "warm-spring", "lithia-springs", "wellsprings", "geyser"),
    marketing_words=("in oregon", "cabins", "resort"),
    confidence="high",
)

SOURCES: Dict[str, SourceProfile] = {
    SOAKOREGON.source_name: SOAKOREGON,
}


def get_source(name: str) -> SourceProfile:
    try:
        return SOURCES[name.strip().lower()]
    except KeyError as exc:
        known = ", ".join(sorted(SOURCES))
        raise ConfigError(f"Unknown scrape source {name!r}; expected one of: {known}") from exc
