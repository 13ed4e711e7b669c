from datetime import datetime
from typing import Any

from pydantic import BaseModel

from pnode_monitor.models.node import FleetSnapshot, NodeStatus


class NetworkStats(BaseModel):
    total_nodes: int
    online_nodes: int
    unstable_nodes: int
    offline_nodes: int
    total_storage_committed: int
    total_storage_used: int
    avg_latency_ms: float
    duplicates_dropped: int
    sources_total: int
    sources_failed: int
    fetched_at: datetime


class ServiceHealth(BaseModel):
    success: bool = True
    service: str
    version: str
    seed_ips: list[str]
    last_poll_at: datetime | None = None
    last_error: str | None = None
    timestamp: datetime


def build_network_stats(snapshot: FleetSnapshot) -> NetworkStats:
    nodes = snapshot.nodes
    by_status = {status: 0 for status in NodeStatus}
    for node in nodes:
        by_status[node.status] += 1
    latencies = [node.metrics.latency_ms for node in nodes if node.metrics.latency_ms > 0]
    return NetworkStats(
        total_nodes=len(nodes),
        online_nodes=by_status[NodeStatus.online],
        unstable_nodes=by_status[NodeStatus.unstable],
        offline_nodes=by_status[NodeStatus.offline],
        total_storage_committed=sum(node.storage.committed for node in nodes),
        total_storage_used=sum(node.storage.used for node in nodes),
        avg_latency_ms=round(sum(latencies) / len(latencies), 2) if latencies else 0.0,
        duplicates_dropped=snapshot.duplicates_dropped,
        sources_total=snapshot.sources_total,
        sources_failed=snapshot.sources_failed,
        fetched_at=snapshot.fetched_at,
    )


class NodeLiveStats(BaseModel):
    success: bool = True
    address: str
    stats: dict[str, Any]
    timestamp: datetime
