"""Additive, capped confidence scoring over distinct source types.

The score depends only on which source types are present, never on how
many signals of each type were seen.  Contributions are non-negative and
the sum is capped, so adding a source type can never lower the score.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

import structlog

logger = structlog.get_logger()

MAX_SCORE = 100
REPORTED_THRESHOLD = 60
CONFIRMED_THRESHOLD = 86


class SourceType(str, Enum):
    WEATHER = "weather"
    FIRE_REPORT = "fire_report"
    COMMERCIAL_FIRE = "commercial_fire"
    CAD = "cad"
    NEWS = "news"
    DECLARATION = "declaration"


class VerificationStatus(str, Enum):
    PROBABLE = "probable"
    REPORTED = "reported"
    CONFIRMED = "confirmed"


def source_weight(source_type: SourceType) -> int:
    """Fixed contribution of one source type to the confidence score."""
    match source_type:
        case SourceType.WEATHER:
            return 40
        case SourceType.FIRE_REPORT:
            return 25
        case SourceType.COMMERCIAL_FIRE:
            return 25
        case SourceType.CAD:
            return 20
        case SourceType.NEWS:
            return 15
        case SourceType.DECLARATION:
            return 10


def parse_source_types(values: Iterable[str]) -> set[SourceType]:
    """Map raw ``source_type`` strings onto the closed enum.

    Unknown values are dropped (they contribute nothing) and logged so a
    new adapter cannot silently inflate or deflate scores.
    """
    parsed: set[SourceType] = set()
    for value in values:
        try:
            parsed.add(SourceType(value))
        except ValueError:
            logger.warning("unknown_source_type", source_type=value)
    return parsed


def confidence_score(source_types: Iterable[str]) -> int:
    """Compute the 0-100 confidence score for a set of source types."""
    total = sum(source_weight(st) for st in parse_source_types(set(source_types)))
    return min(MAX_SCORE, total)


def verification_status(score: int) -> VerificationStatus:
    """Band a confidence score into a verification tier."""
    if score < REPORTED_THRESHOLD:
        return VerificationStatus.PROBABLE
    if score < CONFIRMED_THRESHOLD:
        return VerificationStatus.REPORTED
    return VerificationStatus.CONFIRMED


@dataclass(frozen=True)
class Badge:
    label: str
    description: str
    color: str


def verification_badge(
    status: str, score: int, signal_count: int, source_types: Iterable[str] | None
) -> Badge:
    """Display badge for a cluster, as shown on the loss feed."""
    types = set(source_types or [])
    has_weather = SourceType.WEATHER.value in types
    has_non_weather = any(t != SourceType.WEATHER.value for t in types)

    if status == VerificationStatus.CONFIRMED:
        return Badge(
            label="Multi-Source Confirmed",
            description=f"Confidence: {score}% - Verified by {signal_count} signals",
            color="green",
        )
    if status == VerificationStatus.REPORTED and has_non_weather:
        return Badge(
            label="Reported Incident",
            description=f"Confidence: {score}% - {signal_count} signals including non-weather sources",
            color="amber",
        )
    if has_weather and not has_non_weather:
        return Badge(
            label="Weather-Derived",
            description=f"Confidence: {score}% - Based on weather data",
            color="blue",
        )
    return Badge(
        label="Probable",
        description=f"Confidence: {score}% - {signal_count} signals",
        color="gray",
    )
