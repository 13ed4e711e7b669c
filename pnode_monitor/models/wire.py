from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict

from pnode_monitor.models.node import (
    GeoData,
    NodeHealth,
    NodeMetrics,
    NodeRecord,
    NodeStatus,
    NodeStorage,
    UNKNOWN_ADDRESS,
    utc_now,
)

ONLINE_WINDOW_SEC = 60
UNSTABLE_WINDOW_SEC = 300
UPTIME_WINDOW_SEC = 7 * 24 * 60 * 60

STABILITY_BY_STATUS = {NodeStatus.online: 95.0, NodeStatus.unstable: 65.0, NodeStatus.offline: 15.0}
RESPONSIVENESS_BY_STATUS = {NodeStatus.online: 95.0, NodeStatus.unstable: 65.0, NodeStatus.offline: 0.0}


class WireHealth(BaseModel):
    model_config = ConfigDict(extra="ignore")

    availability: float | None = None
    stability: float | None = None
    responsiveness: float | None = None
    total: float | None = None


class WireGeo(BaseModel):
    model_config = ConfigDict(extra="ignore")

    lat: float | None = None
    lon: float | None = None
    country: str | None = None
    city: str | None = None


class PodRaw(BaseModel):
    """One pod entry as a seed reports it over get-pods-with-stats."""

    model_config = ConfigDict(extra="ignore")

    address: str | None = None
    pubkey: str | None = None
    is_public: bool | None = None
    rpc_port: int | None = None
    last_seen_timestamp: float | None = None
    uptime: float | None = None
    storage_committed: float | None = None
    storage_used: float | None = None
    storage_usage_percent: float | None = None
    version: str | None = None
    status: str | None = None
    latency_ms: float | None = None
    uptime_percent: float | None = None
    gossip_participation: float | None = None
    health: WireHealth | None = None
    credits: float | None = None
    geo: WireGeo | None = None

    @property
    def identity(self) -> str | None:
        return (self.pubkey or "").strip() or (self.address or "").strip() or None


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def _last_seen(pod: PodRaw, now: datetime) -> datetime:
    ts = pod.last_seen_timestamp
    if not ts or ts <= 0:
        return now
    # some seeds report milliseconds
    if ts > 1e12:
        ts = ts / 1000
    return datetime.fromtimestamp(ts, tz=timezone.utc)


def derive_status(last_seen: datetime, now: datetime) -> NodeStatus:
    age = (now - last_seen).total_seconds()
    if age < ONLINE_WINDOW_SEC:
        return NodeStatus.online
    if age < UNSTABLE_WINDOW_SEC:
        return NodeStatus.unstable
    return NodeStatus.offline


def _status(pod: PodRaw, last_seen: datetime, now: datetime) -> NodeStatus:
    reported = (pod.status or "").strip().lower()
    if reported in {item.value for item in NodeStatus}:
        return NodeStatus(reported)
    return derive_status(last_seen, now)


def _uptime_percent(pod: PodRaw) -> float:
    if pod.uptime_percent is not None:
        return _clamp(pod.uptime_percent)
    seconds = max(0.0, pod.uptime or 0.0)
    return min(100.0, (seconds / UPTIME_WINDOW_SEC) * 100)


def _health(pod: PodRaw, status: NodeStatus, uptime: float, responsiveness: float) -> NodeHealth:
    reported = pod.health or WireHealth()
    availability = _clamp(reported.availability) if reported.availability is not None else uptime
    stability = _clamp(reported.stability) if reported.stability is not None else STABILITY_BY_STATUS[status]
    responsive = _clamp(reported.responsiveness) if reported.responsiveness is not None else responsiveness
    if reported.total is not None:
        total = _clamp(reported.total)
    else:
        total = float(round(availability * 0.40 + stability * 0.35 + responsive * 0.25))
    return NodeHealth(
        availability=availability,
        stability=stability,
        responsiveness=responsive,
        total=total,
    )


def _storage(pod: PodRaw) -> NodeStorage:
    committed = max(0, int(pod.storage_committed or 0))
    if pod.storage_used is not None:
        used = max(0, int(pod.storage_used))
    elif pod.storage_usage_percent is not None:
        used = max(0, int(committed * pod.storage_usage_percent / 100))
    else:
        used = 0
    return NodeStorage(committed=committed, used=used)


def _geo(pod: PodRaw) -> GeoData | None:
    if pod.geo is None:
        return None
    return GeoData(
        lat=pod.geo.lat or 0.0,
        lon=pod.geo.lon or 0.0,
        country=(pod.geo.country or "").strip(),
        city=(pod.geo.city or "").strip(),
    )


def host_of(address: str) -> str:
    if address.startswith("["):
        return address[1:].split("]", 1)[0]
    if address.count(":") == 1:
        return address.split(":", 1)[0]
    return address


def to_node_record(
    pod: PodRaw,
    source_address: str,
    seeds: Iterable[str] = (),
    now: datetime | None = None,
) -> NodeRecord:
    identity = pod.identity
    if identity is None:
        raise ValueError("pod has neither pubkey nor address")
    now = now or utc_now()
    address = (pod.address or "").strip() or UNKNOWN_ADDRESS
    last_seen = _last_seen(pod, now)
    status = _status(pod, last_seen, now)
    uptime = _uptime_percent(pod)
    if pod.gossip_participation is not None:
        responsiveness = _clamp(pod.gossip_participation)
    else:
        responsiveness = RESPONSIVENESS_BY_STATUS[status]

    return NodeRecord(
        identity=identity,
        pubkey=(pod.pubkey or "").strip() or None,
        address=address,
        source_address=source_address,
        status=status,
        metrics=NodeMetrics(
            latency_ms=max(0.0, pod.latency_ms or 0.0),
            uptime=uptime,
            last_seen=last_seen,
            responsiveness=responsiveness,
        ),
        health=_health(pod, status, uptime, responsiveness),
        storage=_storage(pod),
        credits=max(0, int(pod.credits or 0)),
        version=(pod.version or "").strip() or "unknown",
        is_public=pod.is_public,
        rpc_port=pod.rpc_port,
        is_seed=host_of(address) in set(seeds),
        geo=_geo(pod),
    )
