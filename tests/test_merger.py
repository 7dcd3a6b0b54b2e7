"""Tests for folding candidates into persisted clusters."""

import datetime as dt

import pytest
import sqlalchemy as sa

from loss_dedup.clustering.candidates import build_candidates
from loss_dedup.clustering.merger import address_completeness, best_address_signal, merge_candidate
from loss_dedup.errors import PersistenceConflict
from loss_dedup.models.cluster_signal import ClusterSignal
from loss_dedup.models.loss_cluster import LossCluster
from loss_dedup.worker.persistence import insert_memberships

T0 = dt.datetime(2026, 10, 1, 12, 0)
LAT, LNG = 32.7767, -96.7970


async def _merge(session_factory, signals, config):
    """Build candidates from signals and merge each; returns the outcomes."""
    outcomes = []
    for candidate in build_candidates(signals, config).candidates:
        async with session_factory() as session, session.begin():
            outcomes.append(await merge_candidate(session, candidate, config))
    return outcomes


async def _clusters(session_factory) -> list[LossCluster]:
    async with session_factory() as session:
        result = await session.execute(sa.select(LossCluster).order_by(LossCluster.id))
        return list(result.scalars().all())


class TestAddressHelpers:
    def test_completeness_counts_filled_fields(self, make_signal):
        assert address_completeness(make_signal()) == 0
        assert address_completeness(make_signal(address_text="1 Main St", city="Dallas", zip="75201")) == 3

    def test_best_address_prefers_most_complete(self, make_signal):
        bare = make_signal(id="bare", city="Dallas")
        full = make_signal(id="full", address_text="1 Main St", city="Dallas", state_code="TX", zip="75201")
        assert best_address_signal([bare, full])["id"] == "full"

    def test_best_address_tie_keeps_first(self, make_signal):
        a = make_signal(id="a", city="Dallas")
        b = make_signal(id="b", city="Plano")
        assert best_address_signal([a, b])["id"] == "a"


@pytest.mark.asyncio
async def test_creates_cluster_with_best_address(test_session_factory, add_signals, make_signal, clustering_config):
    specs = [
        {"id": "a", "source_type": "weather", "city": "Dallas"},
        {
            "id": "b",
            "source_type": "fire_report",
            "lat": LAT + 0.018,
            "occurred_at": T0 + dt.timedelta(hours=3),
            "address_text": "1 Main St",
            "city": "Dallas",
            "state_code": "TX",
            "zip": "75201",
        },
    ]
    await add_signals(*specs)

    outcomes = await _merge(test_session_factory, [make_signal(**s) for s in specs], clustering_config)

    assert len(outcomes) == 1
    assert outcomes[0].created is True
    assert outcomes[0].signals_linked == 2

    [cluster] = await _clusters(test_session_factory)
    assert cluster.confidence_score == 65
    assert cluster.verification_status == "reported"
    assert cluster.signal_count == 2
    assert cluster.source_types == ["fire_report", "weather"]
    assert cluster.address_text == "1 Main St"
    assert cluster.state_code == "TX"
    assert cluster.time_window_start == T0
    assert cluster.time_window_end == T0 + dt.timedelta(hours=3)
    assert cluster.center_lat == pytest.approx(LAT + 0.009)


@pytest.mark.asyncio
async def test_updates_nearby_cluster(test_session_factory, add_signals, make_signal, clustering_config):
    first = [
        {"id": "a", "source_type": "weather"},
        {"id": "b", "source_type": "fire_report"},
    ]
    await add_signals(*first)
    await _merge(test_session_factory, [make_signal(**s) for s in first], clustering_config)

    later = {"id": "c", "source_type": "cad", "occurred_at": T0 + dt.timedelta(hours=20), "lat": LAT + 0.01}
    await add_signals(later)
    [outcome] = await _merge(test_session_factory, [make_signal(**later)], clustering_config)

    assert outcome.created is False
    [cluster] = await _clusters(test_session_factory)
    assert cluster.confidence_score == 85
    assert cluster.verification_status == "reported"
    assert cluster.signal_count == 3
    assert cluster.source_types == ["cad", "fire_report", "weather"]
    # Window and centroid follow the members
    assert cluster.time_window_end == T0 + dt.timedelta(hours=20)
    assert cluster.center_lat == pytest.approx(LAT + 0.01 / 3)


@pytest.mark.asyncio
async def test_score_never_lowered(test_session_factory, add_signals, make_signal, clustering_config):
    await add_signals({"id": "a", "source_type": "weather"})
    await _merge(test_session_factory, [make_signal(id="a", source_type="weather")], clustering_config)

    async with test_session_factory() as session, session.begin():
        cluster = (await session.execute(sa.select(LossCluster))).scalar_one()
        cluster.confidence_score = 90
        cluster.verification_status = "confirmed"

    await add_signals({"id": "b", "source_type": "weather"})
    await _merge(test_session_factory, [make_signal(id="b", source_type="weather")], clustering_config)

    [cluster] = await _clusters(test_session_factory)
    assert cluster.confidence_score == 90
    assert cluster.verification_status == "confirmed"
    assert cluster.signal_count == 2


@pytest.mark.asyncio
async def test_other_event_type_creates_new_cluster(test_session_factory, add_signals, make_signal, clustering_config):
    await add_signals({"id": "fire", "event_type": "fire"}, {"id": "hail", "event_type": "hail"})

    await _merge(test_session_factory, [make_signal(id="fire", event_type="fire")], clustering_config)
    await _merge(test_session_factory, [make_signal(id="hail", event_type="hail")], clustering_config)

    assert [c.event_type for c in await _clusters(test_session_factory)] == ["fire", "hail"]


@pytest.mark.asyncio
async def test_outside_padded_window_creates_new_cluster(
    test_session_factory, add_signals, make_signal, clustering_config
):
    await add_signals({"id": "early"}, {"id": "late", "occurred_at": T0 + dt.timedelta(hours=49)})

    await _merge(test_session_factory, [make_signal(id="early")], clustering_config)
    await _merge(
        test_session_factory, [make_signal(id="late", occurred_at=T0 + dt.timedelta(hours=49))], clustering_config
    )

    assert len(await _clusters(test_session_factory)) == 2


@pytest.mark.asyncio
async def test_already_linked_candidate_raises_conflict(
    test_session_factory, add_signals, make_signal, clustering_config
):
    await add_signals({"id": "a"})
    candidates = build_candidates([make_signal(id="a")], clustering_config).candidates
    async with test_session_factory() as session, session.begin():
        await merge_candidate(session, candidates[0], clustering_config)

    far_config = clustering_config.model_copy(
        update={"match": clustering_config.match.model_copy(update={"max_distance_km": 0.01})}
    )
    moved = build_candidates([make_signal(id="a", lat=LAT + 1.0)], far_config).candidates[0]

    with pytest.raises(PersistenceConflict):
        async with test_session_factory() as session, session.begin():
            await merge_candidate(session, moved, far_config)

    # The cluster created for the conflicting candidate was rolled back
    assert len(await _clusters(test_session_factory)) == 1
    async with test_session_factory() as session:
        count = (await session.execute(sa.select(sa.func.count()).select_from(ClusterSignal))).scalar_one()
    assert count == 1


@pytest.mark.asyncio
async def test_new_cluster_built_from_linked_signals_only(
    test_session_factory, add_signals, make_signal, clustering_config
):
    taken = {
        "id": "taken",
        "source_type": "news",
        "address_text": "9 Elm St",
        "city": "Dallas",
        "state_code": "TX",
        "zip": "75202",
    }
    await add_signals({"id": "fresh", "source_type": "fire_report"}, taken)

    # Another pass already linked "taken" to a cluster far away
    async with test_session_factory() as session, session.begin():
        elsewhere = LossCluster(
            event_type="fire",
            center_lat=LAT + 1.0,
            center_lng=LNG,
            time_window_start=T0,
            time_window_end=T0,
            confidence_score=15,
            verification_status="probable",
            signal_count=1,
            source_types=["news"],
        )
        session.add(elsewhere)
        await session.flush()
        await insert_memberships(session, elsewhere.id, ["taken"])

    candidate = build_candidates(
        [make_signal(id="fresh", source_type="fire_report"), make_signal(**taken)], clustering_config
    ).candidates[0]
    async with test_session_factory() as session, session.begin():
        outcome = await merge_candidate(session, candidate, clustering_config)

    assert outcome.created is True
    assert outcome.signals_linked == 1
    cluster = next(c for c in await _clusters(test_session_factory) if c.id == outcome.cluster_id)
    assert cluster.source_types == ["fire_report"]
    assert cluster.confidence_score == 25
    assert cluster.verification_status == "probable"
    assert cluster.signal_count == 1
    assert cluster.address_text is None
