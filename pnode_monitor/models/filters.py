from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from pnode_monitor.models.node import NodeRecord, NodeStatus
from pnode_monitor.models.score import HealthScoreBreakdown


class SortKey(StrEnum):
    health_score = "healthScore"
    uptime = "uptime"
    latency = "latency"
    storage = "storage"
    credits = "credits"
    name = "name"


class SortOrder(StrEnum):
    asc = "asc"
    desc = "desc"


class NodeFilters(BaseModel):
    model_config = ConfigDict(frozen=True)

    search: str = ""
    status: list[NodeStatus] = Field(default_factory=list)
    regions: list[str] = Field(default_factory=list)
    health_score_min: float = Field(default=0, ge=0, le=100)
    health_score_max: float = Field(default=100, ge=0, le=100)
    uptime_min: float = Field(default=0, ge=0)
    latency_max: float | None = Field(default=None, ge=0)
    storage_min: float = Field(default=0, ge=0)
    versions: list[str] = Field(default_factory=list)
    sort_by: SortKey | None = None
    sort_order: SortOrder = SortOrder.desc


class FilterPreset(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str
    filters: dict[str, Any]


FILTER_PRESETS: tuple[FilterPreset, ...] = (
    FilterPreset(
        id="top-performers",
        name="Top Performers",
        description="Nodes with excellent health scores and uptime",
        filters={
            "health_score_min": 90,
            "uptime_min": 99,
            "status": [NodeStatus.online],
            "sort_by": SortKey.health_score,
            "sort_order": SortOrder.desc,
        },
    ),
    FilterPreset(
        id="reliable",
        name="Reliable Nodes",
        description="High uptime and low latency",
        filters={
            "uptime_min": 95,
            "latency_max": 100,
            "status": [NodeStatus.online],
            "sort_by": SortKey.uptime,
            "sort_order": SortOrder.desc,
        },
    ),
    FilterPreset(
        id="high-capacity",
        name="High Capacity",
        description="Nodes with significant storage",
        filters={
            "storage_min": 500,
            "status": [NodeStatus.online],
            "sort_by": SortKey.storage,
            "sort_order": SortOrder.desc,
        },
    ),
    FilterPreset(
        id="needs-attention",
        name="Needs Attention",
        description="Nodes with issues requiring review",
        filters={
            "health_score_max": 70,
            "sort_by": SortKey.health_score,
            "sort_order": SortOrder.asc,
        },
    ),
    FilterPreset(
        id="unstable",
        name="Unstable Nodes",
        description="Nodes with connectivity issues",
        filters={
            "status": [NodeStatus.unstable],
            "sort_by": SortKey.health_score,
            "sort_order": SortOrder.asc,
        },
    ),
)


class FilterOptions(BaseModel):
    regions: list[str] = Field(default_factory=list)
    versions: list[str] = Field(default_factory=list)
    statuses: list[NodeStatus] = Field(default_factory=list)


class ScoredNode(BaseModel):
    node: NodeRecord
    score: HealthScoreBreakdown


class NodeQueryResponse(BaseModel):
    total: int
    matched: int
    preset: str | None = None
    items: list[ScoredNode]
