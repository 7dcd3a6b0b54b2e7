"""Confidence scoring and verification tiers."""

from loss_dedup.scoring.confidence import (
    SourceType,
    VerificationStatus,
    confidence_score,
    verification_badge,
    verification_status,
)

__all__ = [
    "SourceType",
    "VerificationStatus",
    "confidence_score",
    "verification_badge",
    "verification_status",
]
