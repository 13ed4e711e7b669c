import pytest

from pnode_monitor.models.node import NodeStatus
from pnode_monitor.models.score import ScoreWeights, Trend
from pnode_monitor.services.score_engine import (
    grade_for,
    latency_score,
    network_health_stats,
    score,
    storage_score,
)


def test_reference_node_breakdown(node_factory):
    node = node_factory(
        "node-a",
        uptime=99.95,
        health_total=100,
        committed_gb=100,
        used_gb=70,
        latency_ms=40,
        credits=50,
    )

    breakdown = score(node)

    assert breakdown.components.storage.value == pytest.approx(70.0)
    assert breakdown.components.storage.score == 100
    assert breakdown.components.latency.score == 100
    assert breakdown.components.uptime.value == pytest.approx(99.95)
    assert breakdown.components.health.score == 100
    # 25 from credits, 50 from 100 GB committed
    assert breakdown.components.contribution.score == 75
    assert breakdown.components.contribution.value == 50
    assert breakdown.overall == 97
    assert breakdown.grade == "A+"


def test_score_is_deterministic(node_factory):
    node = node_factory("node-a", uptime=87.3, latency_ms=133, health_total=61, used_gb=95)
    first = score(node)
    second = score(node)
    assert first == second
    assert isinstance(first.overall, int)
    assert 0 <= first.overall <= 100


@pytest.mark.parametrize(
    ("overall", "grade"),
    [
        (100, "A+"),
        (95, "A+"),
        (94, "A"),
        (90, "A"),
        (89, "A-"),
        (85, "A-"),
        (80, "B+"),
        (75, "B"),
        (70, "B-"),
        (65, "C+"),
        (60, "C"),
        (55, "C-"),
        (50, "D"),
        (49, "F"),
        (0, "F"),
    ],
)
def test_grade_boundaries(overall, grade):
    assert grade_for(overall) == grade


@pytest.mark.parametrize(
    ("utilization", "expected"),
    [
        (0, 50),
        (20, 75),
        (40, 100),
        (65, 100),
        (90, 100),
        (95, 75),
        (100, 50),
    ],
)
def test_storage_score_band(utilization, expected):
    assert storage_score(utilization) == pytest.approx(expected)


def test_storage_overcommit_does_not_crash(node_factory):
    node = node_factory("node-a", committed_gb=10, used_gb=40)
    breakdown = score(node)
    assert breakdown.components.storage.value == pytest.approx(400.0)
    assert breakdown.components.storage.score == 0


def test_zero_committed_storage_treated_as_one_byte(node_factory):
    node = node_factory("node-a", committed_gb=0, used_gb=0)
    breakdown = score(node)
    assert breakdown.components.storage.value == 0
    assert breakdown.components.storage.score == 50


@pytest.mark.parametrize(
    ("latency", "expected"),
    [
        (0, 100),
        (50, 100),
        (75, 95),
        (100, 90),
        (150, 80),
        (200, 70),
        (250, 65),
        (900, 0),
    ],
)
def test_latency_score_piecewise(latency, expected):
    assert latency_score(latency) == pytest.approx(expected)


def test_custom_weights(node_factory):
    node = node_factory("node-a", uptime=40, health_total=100)
    only_uptime = ScoreWeights(uptime=1.0, health=0, storage=0, latency=0, contribution=0)
    breakdown = score(node, only_uptime)
    assert breakdown.overall == 40
    assert breakdown.components.uptime.weight == 1.0


@pytest.mark.parametrize(
    ("status", "health_total", "trend"),
    [
        (NodeStatus.online, 81, Trend.up),
        (NodeStatus.online, 80, Trend.stable),
        (NodeStatus.unstable, 95, Trend.stable),
        (NodeStatus.offline, 95, Trend.down),
        (NodeStatus.online, 49, Trend.down),
        (NodeStatus.unstable, 50, Trend.stable),
    ],
)
def test_trend(node_factory, status, health_total, trend):
    node = node_factory("node-a", status=status, health_total=health_total)
    assert score(node).trend == trend


def test_network_health_stats_empty():
    stats = network_health_stats([])
    assert stats.average == 0
    assert stats.median == 0
    assert stats.p95 == 0
    assert stats.distribution.model_dump() == {"excellent": 0, "good": 0, "fair": 0, "poor": 0}


def test_network_health_stats(node_factory):
    perfect = node_factory("perfect", uptime=100, health_total=100, latency_ms=10, credits=100)
    perfect_too = node_factory("perfect-2", uptime=100, health_total=100, latency_ms=10, credits=100)
    middling = node_factory("middling", uptime=60, health_total=40, latency_ms=10, credits=0)
    poor = node_factory("poor", uptime=0, health_total=0, committed_gb=0, used_gb=0, latency_ms=0, credits=0)

    assert score(perfect).overall == 100
    assert score(middling).overall == 68
    assert score(poor).overall == 25

    stats = network_health_stats([perfect, middling, poor, perfect_too])

    assert stats.average == 73
    assert stats.median == 100
    assert stats.p95 == 100
    assert stats.distribution.excellent == 2
    assert stats.distribution.good == 0
    assert stats.distribution.fair == 1
    assert stats.distribution.poor == 1
