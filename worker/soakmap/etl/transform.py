"""Utilities for transforming scraped candidates into canonical spring records."""

import logging
import re
from typing import Optional

from soakmap.core.sources import SourceProfile
from soakmap.etl.classify import (
    classify_access_difficulty,
    classify_experience,
    classify_fee,
    classify_temperature,
)
from soakmap.models import CandidateRecord, SpringRecord

logger = logging.getLogger(__name__)

MIN_DESCRIPTION_LENGTH = 20


def slugify(name: str, state: str) -> str:
    base = re.sub(r"['’`]", "", (name or "").lower())
    base = re.sub(r"[^a-z0-9]+", "-", base).strip("-")
    return f"{base}-{state.lower()}" if base else state.lower()


def build_source_id(source_name: str, slug: str) -> str:
    return f"{source_name}-{slug}"


def fallback_description(name: str, spring_type: str, region_name: str, is_commercial: bool) -> str:
    description = f"{name} is a {spring_type} spring in {region_name}."
    if is_commercial:
        description += " This is a commercial facility."
    return description


def to_spring_record(candidate: CandidateRecord, profile: SourceProfile) -> Optional[SpringRecord]:
    """Assemble a canonical record; returns None when coordinates are missing."""
    if not candidate.has_coordinates:
        logger.debug("Dropping %s: no coordinates", candidate.url)
        return None

    spring_type = classify_temperature(candidate.temp_f)

    description = (candidate.description or "").strip()
    if len(description) < MIN_DESCRIPTION_LENGTH:
        description = fallback_description(candidate.name, spring_type, profile.region_name, candidate.is_commercial)

    slug = slugify(candidate.name, profile.state)

    return SpringRecord(
        name=candidate.name,
        slug=slug,
        state=profile.state,
        lat=candidate.lat,
        lng=candidate.lng,
        spring_type=spring_type,
        experience_type=classify_experience(candidate.is_commercial),
        access_difficulty=classify_access_difficulty(candidate.access_info),
        fee_type=classify_fee(candidate.fee_info, candidate.is_commercial),
        temp_f=candidate.temp_f,
        description=description,
        confidence=profile.confidence,
        source=profile.source_name,
        source_id=build_source_id(profile.source_name, slug),
    )
