"""Pydantic request/response schemas for the loss cluster API."""

from __future__ import annotations

import datetime as dt
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, computed_field
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class PaginatedResponse(BaseModel, Generic[T]):
    items: list[T]
    total: int
    page: int
    size: int
    pages: int


# --- Clustering trigger ---


class ClusteringResultResponse(BaseModel):
    """Pass result, serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool
    clusters_created: int = 0
    clusters_updated: int = 0
    signals_clustered: int = 0
    signals_suppressed: int = 0
    signals_skipped: int = 0
    errors: list[str] = []


class ClusteringRunSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    trigger: str
    status: str
    started_at: dt.datetime
    completed_at: dt.datetime | None = None
    signals_fetched: int
    clusters_created: int
    clusters_updated: int
    signals_clustered: int
    signals_suppressed: int
    signals_skipped: int
    errors: list[str] | None = None


# --- Clusters ---


class SignalDetail(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    source_type: str
    source_name: str
    external_id: str | None = None
    event_type: str
    occurred_at: dt.datetime
    reported_at: dt.datetime | None = None
    lat: float | None = None
    lng: float | None = None
    address_text: str | None = None
    city: str | None = None
    state_code: str | None = None
    zip: str | None = None
    severity_raw: float | None = None
    confidence_raw: float | None = None


class ClusterSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    event_type: str
    center_lat: float
    center_lng: float
    address_text: str | None = None
    city: str | None = None
    state_code: str | None = None
    zip: str | None = None
    time_window_start: dt.datetime
    time_window_end: dt.datetime
    confidence_score: int
    verification_status: str
    signal_count: int
    source_types: list[str] | None = None
    created_at: dt.datetime | None = None
    updated_at: dt.datetime | None = None

    @computed_field
    @property
    def has_weather_signal(self) -> bool:
        return "weather" in (self.source_types or [])

    @computed_field
    @property
    def has_non_weather_signal(self) -> bool:
        return any(t != "weather" for t in self.source_types or [])


class BadgeSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    label: str
    description: str
    color: str


class ClusterDetail(ClusterSummary):
    badge: BadgeSchema
    signals: list[SignalDetail] = []


class ClusterStats(BaseModel):
    total_clusters: int
    by_verification_status: dict[str, int]
    by_event_type: dict[str, int]
    multi_source_count: int
    average_confidence: float
