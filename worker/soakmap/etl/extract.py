"""Heuristic field extraction from a single spring listing page.

Listing pages are free-form HTML, so every field is pulled out by an ordered
list of small strategies. Each strategy is a pure ``(text) -> [value, ...]``
function returning its matches in document order; the first acceptable value
from the first strategy that has one wins. Reordering or adding a strategy
only means editing the corresponding list.
"""

from __future__ import annotations

import logging
import re
from typing import Callable, List, Optional, Sequence, Tuple
from urllib.parse import urlparse

from bs4 import BeautifulSoup

from soakmap.core.sources import SourceProfile
from soakmap.models import CandidateRecord

logger = logging.getLogger(__name__)

DESCRIPTION_MAX_LENGTH = 1500
DESCRIPTION_MAX_PARAGRAPHS = 4
MIN_PARAGRAPH_LENGTH = 30
MIN_SPRING_TEMP_F = 70
MAX_SPRING_TEMP_F = 212

CONTENT_SELECTOR = "article, .entry-content, main"
PARAGRAPH_SELECTOR = "article p, .entry-content p"
NAME_SELECTORS = ("h1.entry-title", "h1")
MAP_URL_MARKERS = ("google.com/maps", "maps.google")

Pair = Tuple[float, float]
CoordinateStrategy = Callable[[str], List[Pair]]
TemperatureStrategy = Callable[[str], List[int]]

# ---------- Coordinates ----------

_NUM = r"(-?\d{1,3}\.\d+)"


def _pair_finder(pattern: str, *, lng_first: bool = False, flags: int = 0) -> CoordinateStrategy:
    regex = re.compile(pattern, flags)

    def find(text: str) -> List[Pair]:
        pairs: List[Pair] = []
        for match in regex.finditer(text or ""):
            first, second = float(match.group(1)), float(match.group(2))
            pairs.append((second, first) if lng_first else (first, second))
        return pairs

    return find


# Map widget URLs are machine generated, so they are tried first.
MAP_WIDGET_STRATEGIES: List[CoordinateStrategy] = [
    _pair_finder(rf"!2d{_NUM}!3d{_NUM}", lng_first=True),
    _pair_finder(rf"[?&;]ll={_NUM},{_NUM}"),
    _pair_finder(rf"[?&;]q={_NUM},{_NUM}"),
    _pair_finder(rf"@{_NUM},{_NUM}"),
]

LABELLED_STRATEGIES: List[CoordinateStrategy] = [
    _pair_finder(r"GPS[:\s]*(\d{2}\.\d{2,6})\s*[,\s]\s*(-?\d{2,3}\.\d{2,6})", flags=re.IGNORECASE),
    _pair_finder(r"GPS[:\s]*(\d{2}\.\d{2,6})\s+(\d{2,3}\.\d{2,6})", flags=re.IGNORECASE),
    _pair_finder(r"coordinates[:\s]*(\d{2}\.\d{2,6})\s*[,\s]\s*(-?\d{2,3}\.\d{2,6})", flags=re.IGNORECASE),
]

FALLBACK_STRATEGIES: List[CoordinateStrategy] = [
    _pair_finder(r"(\d{2}\.\d{2,6})\s*[,/\s]\s*(-?\d{2,3}\.\d{2,6})"),
]


def correct_longitude_sign(lat: float, lng: float, profile: SourceProfile) -> Pair:
    """Negate a positive longitude that matches the region's longitude magnitude.

    Listing sites in the western hemisphere often print the longitude without
    its minus sign.
    """
    low, high = profile.abs_lng_range
    if lng > 0 and low <= lng <= high and profile.lng_bounds[1] < 0:
        lng = -lng
    return lat, lng


def accept_pair(pair: Pair, profile: SourceProfile) -> Optional[Pair]:
    lat, lng = correct_longitude_sign(pair[0], pair[1], profile)
    if profile.in_bounds(lat, lng):
        return lat, lng
    return None


def parse_coordinates(text: str, map_urls: str, profile: SourceProfile) -> Optional[Pair]:
    """Return the first in-region (lat, lng) found by the ordered strategies."""
    ordered: Sequence[Tuple[str, Sequence[CoordinateStrategy]]] = (
        (map_urls, MAP_WIDGET_STRATEGIES),
        (text, LABELLED_STRATEGIES),
        (text, FALLBACK_STRATEGIES),
    )
    for source_text, strategies in ordered:
        if not source_text:
            continue
        for strategy in strategies:
            for pair in strategy(source_text):
                accepted = accept_pair(pair, profile)
                if accepted:
                    return accepted
    return None


# ---------- Temperature ----------


def _temp_finder(pattern: str, *, celsius: bool = False, flags: int = 0) -> TemperatureStrategy:
    regex = re.compile(pattern, flags)

    def find(text: str) -> List[int]:
        values: List[int] = []
        for match in regex.finditer(text or ""):
            value = float(match.group(1))
            if celsius:
                value = value * 9 / 5 + 32
            values.append(int(round(value)))
        return values

    return find


TEMPERATURE_STRATEGIES: List[TemperatureStrategy] = [
    _temp_finder(r"source\s+temp(?:erature)?[:\s]*(\d+)\s*°?\s*F", flags=re.IGNORECASE),
    _temp_finder(r"(\d+)\s*°?\s*F\s+(?:source|spring)", flags=re.IGNORECASE),
    _temp_finder(r"temp(?:erature)?[:\s]*(\d+)\s*°?\s*F", flags=re.IGNORECASE),
    _temp_finder(r"(\d{2,3})\s*°F"),
    _temp_finder(r"(\d{2,3}(?:\.\d+)?)\s*°C", celsius=True),
]


def parse_temperature(text: str) -> Optional[int]:
    """Return the first plausible spring temperature in °F, or None."""
    for strategy in TEMPERATURE_STRATEGIES:
        for temp in strategy(text):
            if MIN_SPRING_TEMP_F <= temp <= MAX_SPRING_TEMP_F:
                return temp
    return None


# ---------- Keyword signals ----------

_FEE_AMOUNT_RE = re.compile(r"(?:fee|cost|price|admission)[:\s]*\$?(\d+)", re.IGNORECASE)
_FREE_RE = re.compile(r"\bfree\b", re.IGNORECASE)
_HIKE_RE = re.compile(r"(\d+\.?\d*)\s*(?:-\s*)?miles?\s+(?:hike|trail|walk)", re.IGNORECASE)
_DRIVE_UP_RE = re.compile(r"drive[- ]up|roadside", re.IGNORECASE)

COMMERCIAL_KEYWORDS = ("resort", "admission", "day pass")
FACILITY_KEYWORDS = (
    ("restrooms", ("restroom", "toilet")),
    ("camping", ("camping", "campground")),
    ("changing rooms", ("changing", "bathhouse")),
)


def parse_fee_info(text: str) -> str:
    match = _FEE_AMOUNT_RE.search(text)
    if match:
        return f"${match.group(1)}"
    if _FREE_RE.search(text):
        return "free"
    return ""


def parse_access_info(text: str) -> str:
    match = _HIKE_RE.search(text)
    if match:
        return f"{match.group(1)} mile hike"
    if _DRIVE_UP_RE.search(text):
        return "drive-up"
    return ""


def parse_facilities(text: str) -> str:
    lowered = text.lower()
    tags = [tag for tag, keywords in FACILITY_KEYWORDS if any(keyword in lowered for keyword in keywords)]
    return ", ".join(tags)


def is_commercial(text: str, url: str) -> bool:
    lowered = text.lower()
    return any(keyword in lowered for keyword in COMMERCIAL_KEYWORDS) or "resort" in url.lower()


# ---------- Name & description ----------


def _strip_region_suffix(name: str, profile: SourceProfile) -> str:
    return re.sub(rf"\s+in\s+{re.escape(profile.region_name)}$", "", name, flags=re.IGNORECASE).strip()


def name_from_url(url: str, profile: SourceProfile) -> str:
    """Build a display name out of the last path segment of a listing URL."""
    segments = [segment for segment in urlparse(url).path.split("/") if segment]
    if not segments:
        return ""

    name = segments[-1].replace("-", " ").lower()
    for word in profile.marketing_words:
        name = re.sub(rf"\b{re.escape(word.lower())}\b", " ", name)
    name = re.sub(r"\s+", " ", name).strip()
    return " ".join(word[:1].upper() + word[1:] for word in name.split(" ") if word)


def extract_name(soup: BeautifulSoup, url: str, profile: SourceProfile) -> str:
    name = ""
    for selector in NAME_SELECTORS:
        node = soup.select_one(selector)
        if node:
            name = " ".join(node.get_text(" ", strip=True).split())
            if name:
                break
    if not name:
        name = name_from_url(url, profile)
    return _strip_region_suffix(name, profile)


def _is_boilerplate(text: str) -> bool:
    lowered = text.lower()
    return (
        len(text) <= MIN_PARAGRAPH_LENGTH
        or "©" in text
        or "copyright" in lowered
        or "cookie" in lowered
    )


def extract_description(soup: BeautifulSoup) -> str:
    paragraphs: List[str] = []
    for node in soup.select(PARAGRAPH_SELECTOR)[:DESCRIPTION_MAX_PARAGRAPHS]:
        text = " ".join(node.get_text(" ", strip=True).split())
        if not _is_boilerplate(text):
            paragraphs.append(text)
    return " ".join(paragraphs)[:DESCRIPTION_MAX_LENGTH]


def _content_text(soup: BeautifulSoup) -> str:
    nodes = soup.select(CONTENT_SELECTOR)
    if not nodes:
        nodes = [soup.body or soup]
    return " ".join(node.get_text(" ", strip=True) for node in nodes)


def _map_urls(soup: BeautifulSoup, html: str) -> str:
    urls: List[str] = []
    for node in soup.find_all(["iframe", "a"]):
        target = node.get("src") or node.get("href") or ""
        if any(marker in target for marker in MAP_URL_MARKERS):
            urls.append(target)
    # Embeds injected by scripts never become tags, so look at the raw markup too.
    urls.extend(re.findall(r"https?://[^\s\"'<>]*google\.com/maps[^\s\"'<>]*", html))
    return "\n".join(urls)


# ---------- Entry point ----------


def extract_spring(html: str, source_url: str, profile: SourceProfile) -> Optional[CandidateRecord]:
    """Parse one listing page into a candidate record, or None if nothing usable is there.

    Never raises: a page that cannot be parsed is logged and skipped so one bad
    page does not stop the run.
    """
    try:
        soup = BeautifulSoup(html or "", "html.parser")
        name = extract_name(soup, source_url, profile)
        if not name:
            logger.debug("No name found for %s", source_url)
            return None

        text = _content_text(soup)
        coords = parse_coordinates(text, _map_urls(soup, html or ""), profile)

        return CandidateRecord(
            name=name,
            url=source_url,
            lat=coords[0] if coords else None,
            lng=coords[1] if coords else None,
            temp_f=parse_temperature(text),
            description=extract_description(soup),
            access_info=parse_access_info(text),
            fee_info=parse_fee_info(text),
            facilities=parse_facilities(text),
            is_commercial=is_commercial(text, source_url),
        )
    except Exception as exc:  # noqa: BLE001
        logger.warning("Failed to parse %s: %s", source_url, exc, exc_info=True)
        return None
