from __future__ import annotations

from datetime import datetime, timezone
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

BYTES_PER_GB = 1024**3
UNKNOWN_ADDRESS = "unknown"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class NodeStatus(StrEnum):
    online = "online"
    unstable = "unstable"
    offline = "offline"


class GeoData(BaseModel):
    model_config = ConfigDict(frozen=True)

    lat: float = 0.0
    lon: float = 0.0
    country: str = ""
    city: str = ""


class NodeMetrics(BaseModel):
    model_config = ConfigDict(frozen=True)

    latency_ms: float = Field(default=0, ge=0)
    uptime: float = Field(default=0, ge=0, le=100)
    last_seen: datetime = Field(default_factory=utc_now)
    responsiveness: float = Field(default=0, ge=0, le=100)


class NodeHealth(BaseModel):
    """Health as reported by (or derived for) the node itself."""

    model_config = ConfigDict(frozen=True)

    availability: float = Field(default=0, ge=0, le=100)
    stability: float = Field(default=0, ge=0, le=100)
    responsiveness: float = Field(default=0, ge=0, le=100)
    total: float = Field(default=0, ge=0, le=100)


class NodeStorage(BaseModel):
    model_config = ConfigDict(frozen=True)

    committed: int = Field(default=0, ge=0)
    used: int = Field(default=0, ge=0)

    @property
    def committed_gb(self) -> float:
        return self.committed / BYTES_PER_GB

    @property
    def utilization_percent(self) -> float:
        # used can exceed committed for a while; callers must tolerate > 100
        return (self.used / (self.committed or 1)) * 100


class NodeRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    identity: str = Field(min_length=1)
    pubkey: str | None = None
    address: str = UNKNOWN_ADDRESS
    source_address: str = ""
    status: NodeStatus = NodeStatus.offline
    metrics: NodeMetrics = Field(default_factory=NodeMetrics)
    health: NodeHealth = Field(default_factory=NodeHealth)
    storage: NodeStorage = Field(default_factory=NodeStorage)
    credits: int = Field(default=0, ge=0)
    version: str = "unknown"
    is_public: bool | None = None
    rpc_port: int | None = None
    is_seed: bool = False
    geo: GeoData | None = None


class FleetSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    nodes: list[NodeRecord] = Field(default_factory=list)
    total_count: int = Field(default=0, ge=0)
    duplicates_dropped: int = Field(default=0, ge=0)
    sources_total: int = Field(default=0, ge=0)
    sources_failed: int = Field(default=0, ge=0)
    failed_sources: list[str] = Field(default_factory=list)
    fetched_at: datetime = Field(default_factory=utc_now)

    def find(self, identity: str) -> NodeRecord | None:
        for node in self.nodes:
            if identity in {node.identity, node.pubkey}:
                return node
            # every pod without an address shares the placeholder
            if node.address != UNKNOWN_ADDRESS and identity == node.address:
                return node
        return None
