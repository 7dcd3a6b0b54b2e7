"""Clustering pass configuration with the production defaults.

All parameters can be overridden via ``config/clustering.yaml``.
If the file does not exist, defaults are used.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

import structlog
import yaml
from pydantic import BaseModel, Field, model_validator


class MatchConfig(BaseModel):
    """Spatial/temporal thresholds for grouping signals into candidates."""

    max_distance_km: float = Field(5.0, gt=0)
    time_window_hours: float = Field(24.0, gt=0)
    # "seed": single-seed scan (order dependent)
    # "connected": connected components over a grid index (order independent)
    grouping: Literal["seed", "connected"] = "seed"


class SuppressionConfig(BaseModel):
    """Noise filter for single-source candidates.

    A single-source candidate is dropped when every member falls below
    BOTH thresholds.  The severity threshold is on the 0-100 scale the
    adapters report, the confidence threshold on 0-1; they are compared
    literally.
    """

    min_confidence: float = 0.70
    min_severity: float = 60.0


class MergeConfig(BaseModel):
    """Parameters for folding candidates into existing clusters."""

    window_padding_hours: float = Field(24.0, ge=0)


class RunConfig(BaseModel):
    """Limits for a single pass."""

    max_run_seconds: float | None = Field(None, gt=0)
    lock_ttl_seconds: int = Field(3600, gt=0)

    @model_validator(mode="after")
    def warn_if_lease_shorter_than_run(self) -> "RunConfig":
        """Log a warning if the lock could expire while a pass is still running."""
        if self.max_run_seconds is not None and self.lock_ttl_seconds < self.max_run_seconds:
            structlog.get_logger().warning(
                "lock_ttl_below_max_run",
                lock_ttl_seconds=self.lock_ttl_seconds,
                max_run_seconds=self.max_run_seconds,
            )
        return self


class ClusteringConfig(BaseModel):
    """Top-level clustering configuration combining all sub-configs."""

    match: MatchConfig = MatchConfig()
    suppression: SuppressionConfig = SuppressionConfig()
    merge: MergeConfig = MergeConfig()
    run: RunConfig = RunConfig()


def load_clustering_config(path: Path) -> ClusteringConfig:
    """Load clustering configuration from a YAML file.

    Returns defaults when the file is missing.  Only keys present in the
    file override defaults.
    """
    if not path.exists():
        structlog.get_logger().info("clustering_config_defaults", path=str(path))
        return ClusteringConfig()

    with open(path) as f:
        data = yaml.safe_load(f) or {}

    return ClusteringConfig(**data)
