from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence

from pnode_monitor.models.filters import (
    FILTER_PRESETS,
    FilterOptions,
    FilterPreset,
    NodeFilters,
    ScoredNode,
    SortKey,
    SortOrder,
)
from pnode_monitor.models.node import NodeRecord, NodeStatus
from pnode_monitor.models.score import DEFAULT_WEIGHTS, HealthScoreBreakdown, ScoreWeights
from pnode_monitor.services.score_engine import score

DEFAULT_FILTERS = NodeFilters()


def _matches_search(node: NodeRecord, needle: str) -> bool:
    haystack = [node.identity, node.address]
    if node.geo is not None:
        haystack.extend([node.geo.country, node.geo.city])
    return any(needle in (item or "").lower() for item in haystack)


def _predicates(filters: NodeFilters) -> list[Callable[[NodeRecord], bool]]:
    checks: list[Callable[[NodeRecord], bool]] = []
    needle = filters.search.lower()
    if needle:
        checks.append(lambda node: _matches_search(node, needle))
    if filters.status:
        allowed_status = set(filters.status)
        checks.append(lambda node: node.status in allowed_status)
    if filters.regions:
        allowed_regions = set(filters.regions)
        checks.append(lambda node: node.geo is not None and node.geo.country in allowed_regions)
    if filters.uptime_min > 0:
        checks.append(lambda node: node.metrics.uptime >= filters.uptime_min)
    if filters.latency_max is not None:
        checks.append(lambda node: node.metrics.latency_ms <= filters.latency_max)
    if filters.storage_min > 0:
        checks.append(lambda node: node.storage.committed_gb >= filters.storage_min)
    if filters.versions:
        allowed_versions = set(filters.versions)
        checks.append(lambda node: node.version in allowed_versions)
    return checks


def _sort_value(item: ScoredNode, key: SortKey) -> float | str:
    node = item.node
    if key == SortKey.health_score:
        return item.score.overall
    if key == SortKey.uptime:
        return node.metrics.uptime
    if key == SortKey.latency:
        return node.metrics.latency_ms
    if key == SortKey.storage:
        return node.storage.committed
    if key == SortKey.credits:
        return node.credits
    return node.address


def apply_scored(
    nodes: Iterable[NodeRecord],
    filters: NodeFilters = DEFAULT_FILTERS,
    weights: ScoreWeights = DEFAULT_WEIGHTS,
) -> list[ScoredNode]:
    """
    Filter and order nodes, pairing each survivor with its breakdown.
    Scores are computed once per node and shared by the range check and the sort.
    """
    checks = _predicates(filters)
    matched: list[ScoredNode] = []
    for node in nodes:
        if not all(check(node) for check in checks):
            continue
        breakdown: HealthScoreBreakdown = score(node, weights)
        if not filters.health_score_min <= breakdown.overall <= filters.health_score_max:
            continue
        matched.append(ScoredNode(node=node, score=breakdown))

    if filters.sort_by is None:
        return matched
    # sorted() is stable in both directions, so ties keep snapshot order
    return sorted(
        matched,
        key=lambda item: _sort_value(item, filters.sort_by),
        reverse=filters.sort_order == SortOrder.desc,
    )


def apply_filters(
    nodes: Iterable[NodeRecord],
    filters: NodeFilters = DEFAULT_FILTERS,
    weights: ScoreWeights = DEFAULT_WEIGHTS,
) -> list[NodeRecord]:
    return [item.node for item in apply_scored(nodes, filters, weights)]


filter_and_sort = apply_filters


def get_preset(preset_id: str) -> FilterPreset:
    for preset in FILTER_PRESETS:
        if preset.id == preset_id:
            return preset
    raise KeyError(f"preset_not_found: {preset_id}")


def apply_preset(filters: NodeFilters, preset_id: str) -> NodeFilters:
    preset = get_preset(preset_id)
    return NodeFilters.model_validate({**filters.model_dump(), **preset.filters})


def filter_options(nodes: Sequence[NodeRecord]) -> FilterOptions:
    regions = {node.geo.country for node in nodes if node.geo is not None and node.geo.country}
    versions = {node.version for node in nodes if node.version}
    statuses = {node.status for node in nodes}
    return FilterOptions(
        regions=sorted(regions),
        versions=sorted(versions),
        statuses=[status for status in NodeStatus if status in statuses],
    )


def has_active_filters(filters: NodeFilters) -> bool:
    return (
        bool(filters.search)
        or bool(filters.status)
        or bool(filters.regions)
        or filters.health_score_min > 0
        or filters.health_score_max < 100
        or filters.uptime_min > 0
        or filters.latency_max is not None
        or filters.storage_min > 0
        or bool(filters.versions)
    )
