"""Geo/time matching primitives and clustering configuration."""

from loss_dedup.matching.geo import distance_km, hours_between

__all__ = ["distance_km", "hours_between"]
