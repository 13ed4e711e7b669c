from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

import httpx
import pytest

from pnode_monitor.models.node import (
    BYTES_PER_GB,
    GeoData,
    NodeHealth,
    NodeMetrics,
    NodeRecord,
    NodeStatus,
    NodeStorage,
)

FIXED_NOW = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)


def make_node(
    identity: str,
    *,
    address: str | None = None,
    status: NodeStatus = NodeStatus.online,
    uptime: float = 99.0,
    latency_ms: float = 40.0,
    health_total: float = 90.0,
    committed_gb: float = 100.0,
    used_gb: float = 70.0,
    credits: int = 100,
    version: str = "0.7.0",
    geo: GeoData | None = None,
    source_address: str = "seed-1",
) -> NodeRecord:
    return NodeRecord(
        identity=identity,
        pubkey=identity,
        address=address or f"10.0.0.{sum(map(ord, identity)) % 250 + 1}:9001",
        source_address=source_address,
        status=status,
        metrics=NodeMetrics(latency_ms=latency_ms, uptime=uptime, last_seen=FIXED_NOW, responsiveness=95),
        health=NodeHealth(availability=uptime, stability=95, responsiveness=95, total=health_total),
        storage=NodeStorage(committed=int(committed_gb * BYTES_PER_GB), used=int(used_gb * BYTES_PER_GB)),
        credits=credits,
        version=version,
        geo=geo,
    )


@pytest.fixture
def node_factory() -> Callable[..., NodeRecord]:
    return make_node


def make_pod(pubkey: str | None, address: str | None = None, **extra: Any) -> dict[str, Any]:
    pod: dict[str, Any] = {
        "pubkey": pubkey,
        "address": address,
        "last_seen_timestamp": int(datetime.now(timezone.utc).timestamp()),
        "uptime": 7 * 24 * 60 * 60,
        "storage_committed": 100 * BYTES_PER_GB,
        "storage_used": 70 * BYTES_PER_GB,
        "version": "0.7.0",
    }
    pod.update(extra)
    return pod


@pytest.fixture
def pod_factory() -> Callable[..., dict[str, Any]]:
    return make_pod


def rpc_result(result: Any) -> dict[str, Any]:
    return {"jsonrpc": "2.0", "id": 1, "result": result}


def seed_transport(responses: dict[str, Any], calls: list[str] | None = None) -> httpx.MockTransport:
    """
    Fakes seed endpoints keyed by host.
    Values: a JSON payload, an httpx.Response, an Exception to raise, or a float delay in seconds
    before an empty pod list (used to trip timeouts).
    """

    async def handler(request: httpx.Request) -> httpx.Response:
        host = request.url.host
        if calls is not None:
            calls.append(host)
        value = responses.get(host)
        if value is None:
            raise httpx.ConnectError("connection refused", request=request)
        if isinstance(value, Exception):
            raise value
        if isinstance(value, httpx.Response):
            return value
        if isinstance(value, float):
            await asyncio.sleep(value)
            return httpx.Response(200, json=rpc_result([]))
        return httpx.Response(200, content=json.dumps(value).encode("utf-8"), headers={"Content-Type": "application/json"})

    return httpx.MockTransport(handler)


@pytest.fixture
def transport_factory() -> Callable[..., httpx.MockTransport]:
    return seed_transport
