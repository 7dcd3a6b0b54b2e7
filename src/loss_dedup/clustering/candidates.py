"""Candidate building: group unclustered signals that describe one incident.

Two grouping strategies are available:

- ``seed`` -- each unassigned signal with coordinates seeds a candidate and
  pulls in every other unassigned signal of the same event type within the
  distance and time thresholds *of the seed*.  Matching is not transitive,
  so results can depend on iteration order.
- ``connected`` -- every qualifying pair becomes an edge and candidates are
  the connected components of that graph.  Pairs are only compared within
  neighbouring latitude bands, which avoids the full O(n^2) scan.

Both strategies then apply the single-source suppression policy and
annotate survivors with centroid and time window.
"""

from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime

import networkx as nx

from loss_dedup.matching.config import ClusteringConfig, MatchConfig, SuppressionConfig
from loss_dedup.matching.geo import EARTH_RADIUS_KM, distance_km, hours_between


@dataclass
class Candidate:
    """A group of signals to be evaluated as one incident."""

    signals: list[dict]
    event_type: str
    center_lat: float
    center_lng: float
    time_window_start: datetime
    time_window_end: datetime

    @property
    def signal_ids(self) -> list[str]:
        return [s["id"] for s in self.signals]

    @property
    def source_types(self) -> set[str]:
        return {s["source_type"] for s in self.signals}

    def __len__(self) -> int:
        return len(self.signals)


@dataclass
class CandidateResult:
    """Output of :func:`build_candidates`.

    Attributes:
        candidates: Candidates that survived suppression.
        suppressed_ids: Signals belonging to dropped single-source candidates.
        skipped_ids: Signals without coordinates (never clustered).
    """

    candidates: list[Candidate] = field(default_factory=list)
    suppressed_ids: list[str] = field(default_factory=list)
    skipped_ids: list[str] = field(default_factory=list)


def has_coordinates(signal: dict) -> bool:
    return signal.get("lat") is not None and signal.get("lng") is not None


def signals_match(seed: dict, other: dict, config: MatchConfig) -> bool:
    """Whether two signals plausibly describe the same incident."""
    if seed["event_type"] != other["event_type"]:
        return False
    if hours_between(seed["occurred_at"], other["occurred_at"]) > config.time_window_hours:
        return False
    dist = distance_km((seed["lat"], seed["lng"]), (other["lat"], other["lng"]))
    return dist <= config.max_distance_km


def should_suppress(signals: list[dict], config: SuppressionConfig) -> bool:
    """Single-source candidates where every member is weak are dropped.

    Missing ``confidence_raw``/``severity_raw`` count as 0.
    """
    if len({s["source_type"] for s in signals}) != 1:
        return False
    return all(
        (s.get("confidence_raw") or 0) < config.min_confidence
        and (s.get("severity_raw") or 0) < config.min_severity
        for s in signals
    )


def _annotate(signals: list[dict]) -> Candidate:
    n = len(signals)
    times = [s["occurred_at"] for s in signals]
    return Candidate(
        signals=signals,
        event_type=signals[0]["event_type"],
        center_lat=sum(s["lat"] for s in signals) / n,
        center_lng=sum(s["lng"] for s in signals) / n,
        time_window_start=min(times),
        time_window_end=max(times),
    )


def _group_by_seed(signals: list[dict], config: MatchConfig) -> list[list[dict]]:
    assigned: set[str] = set()
    groups: list[list[dict]] = []

    for seed in signals:
        if seed["id"] in assigned:
            continue
        assigned.add(seed["id"])

        group = [seed]
        for other in signals:
            if other["id"] in assigned:
                continue
            if signals_match(seed, other, config):
                group.append(other)
                assigned.add(other["id"])
        groups.append(group)

    return groups


def _lat_band(lat: float, band_deg: float) -> int:
    return math.floor(lat / band_deg)


def _group_connected(signals: list[dict], config: MatchConfig) -> list[list[dict]]:
    # Great-circle distance is never smaller than the meridian arc, so two
    # signals more than one band apart cannot be within max_distance_km.
    band_deg = math.degrees(config.max_distance_km / EARTH_RADIUS_KM)
    bands: dict[tuple[str, int], list[int]] = defaultdict(list)
    for idx, s in enumerate(signals):
        bands[(s["event_type"], _lat_band(s["lat"], band_deg))].append(idx)

    G = nx.Graph()
    G.add_nodes_from(range(len(signals)))

    for (event_type, band), members in bands.items():
        upper = bands.get((event_type, band + 1), [])
        for pos, i in enumerate(members):
            for j in members[pos + 1 :] + upper:
                if signals_match(signals[i], signals[j], config):
                    G.add_edge(i, j)

    # Keep fetch order stable: order members and components by first index
    components = sorted((sorted(c) for c in nx.connected_components(G)), key=lambda c: c[0])
    return [[signals[i] for i in component] for component in components]


def build_candidates(signals: list[dict], config: ClusteringConfig) -> CandidateResult:
    """Group unclustered signals into candidates and apply suppression.

    Args:
        signals: Unclustered signal dicts (see
            :func:`loss_dedup.worker.persistence.signal_to_dict`), in the
            order they should be considered as seeds.
        config: Clustering configuration.

    Returns:
        A :class:`CandidateResult`.
    """
    result = CandidateResult()

    located: list[dict] = []
    for s in signals:
        if has_coordinates(s):
            located.append(s)
        else:
            result.skipped_ids.append(s["id"])

    if config.match.grouping == "connected":
        groups = _group_connected(located, config.match)
    else:
        groups = _group_by_seed(located, config.match)

    for group in groups:
        if should_suppress(group, config.suppression):
            result.suppressed_ids.extend(s["id"] for s in group)
            continue
        result.candidates.append(_annotate(group))

    return result
