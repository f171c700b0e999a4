"""Map raw extracted signals onto the canonical spring enumerations.

Every function here is total: unknown or empty input falls back to a default
instead of raising. The defaults (``hot`` for unknown temperature,
``moderate_hike`` for unknown access) reflect sites that list backcountry hot
springs; revisit them before pointing the worker at a different kind of source.
"""

import re
from typing import Optional

HOT_MIN_F = 100
WARM_MIN_F = 70
SHORT_WALK_MAX_MILES = 0.5
MODERATE_HIKE_MAX_MILES = 2.0

_MILES_RE = re.compile(r"(\d+\.?\d*)\s*-?\s*mile", re.IGNORECASE)


def classify_temperature(temp_f: Optional[int]) -> str:
    if temp_f is None:
        return "hot"
    if temp_f >= HOT_MIN_F:
        return "hot"
    if temp_f >= WARM_MIN_F:
        return "warm"
    return "cold"


def classify_experience(is_commercial: bool) -> str:
    # "hybrid" is only ever assigned by hand downstream.
    return "resort" if is_commercial else "primitive"


def classify_access_difficulty(access_info: Optional[str]) -> str:
    if not access_info:
        return "moderate_hike"

    lowered = access_info.lower()
    if "drive-up" in lowered or "drive up" in lowered or "roadside" in lowered:
        return "drive_up"

    match = _MILES_RE.search(access_info)
    if not match:
        return "moderate_hike"

    miles = float(match.group(1))
    if miles < SHORT_WALK_MAX_MILES:
        return "short_walk"
    if miles < MODERATE_HIKE_MAX_MILES:
        return "moderate_hike"
    return "difficult_hike"


def classify_fee(fee_info: Optional[str], is_commercial: bool) -> str:
    fee_info = (fee_info or "").strip()
    if fee_info.lower() == "free":
        return "free"
    if "$" in fee_info or is_commercial:
        return "paid"
    return "unknown"
