from __future__ import annotations

import math
from collections.abc import Iterable

from pnode_monitor.models.node import NodeRecord, NodeStatus
from pnode_monitor.models.score import (
    DEFAULT_WEIGHTS,
    HealthScoreBreakdown,
    NetworkHealthStats,
    ScoreComponent,
    ScoreComponents,
    ScoreDistribution,
    ScoreWeights,
    Trend,
)

GRADE_THRESHOLDS: tuple[tuple[int, str], ...] = (
    (95, "A+"),
    (90, "A"),
    (85, "A-"),
    (80, "B+"),
    (75, "B"),
    (70, "B-"),
    (65, "C+"),
    (60, "C"),
    (55, "C-"),
    (50, "D"),
)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _clamp(value: float) -> float:
    return max(0.0, min(100.0, value))


def uptime_score(uptime_percent: float) -> float:
    return _clamp(uptime_percent)


def health_score(reported_total: float) -> float:
    return _clamp(reported_total)


def storage_score(utilization: float) -> float:
    # best band is (40, 90]; both edges score 100
    if utilization < 40:
        return _clamp(50 + (max(0.0, utilization) / 40) * 50)
    if utilization > 90:
        return _clamp(100 - ((utilization - 90) / 10) * 50)
    return 100.0


def latency_score(latency_ms: float) -> float:
    if latency_ms <= 50:
        return 100.0
    if latency_ms <= 100:
        return 90 + ((100 - latency_ms) / 50) * 10
    if latency_ms <= 200:
        return 70 + ((200 - latency_ms) / 100) * 20
    return max(0.0, 70 - ((latency_ms - 200) / 100) * 10)


def contribution_score(credits: int, committed_gb: float) -> float:
    credit_part = min(50.0, (credits / 100) * 50)
    storage_part = min(50.0, (committed_gb / 100) * 50)
    return credit_part + storage_part


def grade_for(overall: int) -> str:
    for threshold, grade in GRADE_THRESHOLDS:
        if overall >= threshold:
            return grade
    return "F"


def trend_for(node: NodeRecord) -> Trend:
    total = node.health.total
    if node.status == NodeStatus.online and total > 80:
        return Trend.up
    if node.status == NodeStatus.offline or total < 50:
        return Trend.down
    return Trend.stable


def score(node: NodeRecord, weights: ScoreWeights = DEFAULT_WEIGHTS) -> HealthScoreBreakdown:
    """
    Composite 0-100 rating for one node.
    Pure: identical input always yields an identical breakdown.
    """
    utilization = node.storage.utilization_percent
    parts = {
        "uptime": (uptime_score(node.metrics.uptime), weights.uptime, node.metrics.uptime),
        "health": (health_score(node.health.total), weights.health, node.health.total),
        "storage": (storage_score(utilization), weights.storage, utilization),
        "latency": (latency_score(node.metrics.latency_ms), weights.latency, node.metrics.latency_ms),
        "contribution": (
            contribution_score(node.credits, node.storage.committed_gb),
            weights.contribution,
            float(node.credits),
        ),
    }

    weighted = sum(part_score * weight for part_score, weight, _ in parts.values())
    overall = max(0, min(100, round_half_up(weighted)))
    components = ScoreComponents(
        **{
            name: ScoreComponent(score=round_half_up(part_score), weight=weight, value=value)
            for name, (part_score, weight, value) in parts.items()
        }
    )
    return HealthScoreBreakdown(
        overall=overall,
        grade=grade_for(overall),
        trend=trend_for(node),
        components=components,
    )


def network_health_stats(nodes: Iterable[NodeRecord], weights: ScoreWeights = DEFAULT_WEIGHTS) -> NetworkHealthStats:
    scores = sorted(score(node, weights).overall for node in nodes)
    if not scores:
        return NetworkHealthStats()

    count = len(scores)
    p95_index = min(count - 1, math.floor(count * 0.95))
    return NetworkHealthStats(
        average=round_half_up(sum(scores) / count),
        median=scores[count // 2],
        p95=scores[p95_index],
        distribution=ScoreDistribution(
            excellent=sum(1 for item in scores if item >= 90),
            good=sum(1 for item in scores if 70 <= item < 90),
            fair=sum(1 for item in scores if 50 <= item < 70),
            poor=sum(1 for item in scores if item < 50),
        ),
    )
