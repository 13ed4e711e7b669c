from __future__ import annotations

import asyncio
import logging
from time import perf_counter
from typing import Any

import httpx
from pydantic import ValidationError

from pnode_monitor.core.logging import get_logger
from pnode_monitor.models.node import FleetSnapshot, GeoData, NodeRecord
from pnode_monitor.models.wire import WireGeo, host_of

logger = get_logger("pnode_monitor.enrichment")

DEFAULT_PROBE_PORT = 6000
MAX_PORT = 65535
LOCAL_HOSTS = {"", "unknown", "127.0.0.1", "localhost", "::1"}


class GeoResolver:
    def __init__(self, api_url: str, client: httpx.AsyncClient) -> None:
        self._api_url = api_url.rstrip("/")
        self._client = client
        self._cache: dict[str, GeoData] = {}

    async def resolve(self, ip: str) -> GeoData | None:
        if ip in LOCAL_HOSTS:
            return None
        cached = self._cache.get(ip)
        if cached is not None:
            return cached
        try:
            response = await self._client.get(f"{self._api_url}/{ip}")
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.debug("geo_lookup_failed", extra={"event": "geo.failed", "node_id": ip, "error": str(exc)})
            return None
        if not isinstance(payload, dict) or payload.get("status") != "success":
            return None
        try:
            wire = WireGeo.model_validate(payload)
        except ValidationError as exc:
            logger.debug("geo_payload_invalid", extra={"event": "geo.invalid", "node_id": ip, "error": str(exc)})
            return None
        geo = GeoData(
            lat=wire.lat or 0.0,
            lon=wire.lon or 0.0,
            country=wire.country or "",
            city=wire.city or "",
        )
        self._cache[ip] = geo
        return geo


async def probe_latency(address: str, timeout: float = 2.0, default_port: int = DEFAULT_PROBE_PORT) -> float | None:
    """TCP connect time in ms, or None when the node cannot be reached in time."""
    host = host_of(address)
    if host in LOCAL_HOSTS:
        return None
    port = default_port
    if address.count(":") == 1:
        try:
            port = int(address.rsplit(":", 1)[1])
        except ValueError:
            return None
    if not 0 < port <= MAX_PORT:
        return None

    started = perf_counter()
    try:
        _, writer = await asyncio.wait_for(asyncio.open_connection(host, port), timeout=timeout)
    except (asyncio.TimeoutError, OSError, OverflowError, ValueError):
        return None
    elapsed = (perf_counter() - started) * 1000
    writer.close()
    try:
        await writer.wait_closed()
    except OSError:
        pass
    return round(elapsed, 2)


class CreditsClient:
    def __init__(self, url: str, client: httpx.AsyncClient) -> None:
        self._url = url
        self._client = client

    def _parse(self, payload: Any) -> dict[str, int]:
        if isinstance(payload, dict):
            payload = payload.get("pods_credits", payload.get("credits", []))
        if not isinstance(payload, list):
            return {}
        credits: dict[str, int] = {}
        for item in payload:
            if not isinstance(item, dict):
                continue
            pod_id = item.get("pod_id") or item.get("pubkey")
            try:
                amount = int(item.get("credits") or 0)
            except (TypeError, ValueError):
                continue
            if pod_id:
                credits[str(pod_id)] = max(0, amount)
        return credits

    async def fetch(self) -> dict[str, int]:
        try:
            response = await self._client.get(self._url)
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("credits_fetch_failed", extra={"event": "credits.failed", "error": str(exc)})
            return {}
        return self._parse(payload)


class FleetEnricher:
    """
    Fills geo, latency and credits that seeds left empty.
    Produces a new snapshot; failures only leave fields untouched.
    """

    def __init__(
        self,
        geo: GeoResolver | None = None,
        credits: CreditsClient | None = None,
        probe_latency_enabled: bool = False,
        probe_timeout: float = 2.0,
        concurrency: int = 16,
        logger: logging.Logger | None = None,
    ) -> None:
        self._geo = geo
        self._credits = credits
        self._probe_latency = probe_latency_enabled
        self._probe_timeout = probe_timeout
        self._concurrency = max(1, concurrency)
        self._logger = logger or get_logger("pnode_monitor.enrichment")

    @property
    def enabled(self) -> bool:
        return self._geo is not None or self._credits is not None or self._probe_latency

    async def _lookup_fields(self, node: NodeRecord, credits: dict[str, int], semaphore: asyncio.Semaphore) -> dict[str, Any]:
        update: dict[str, Any] = {}
        async with semaphore:
            if self._geo is not None and node.geo is None:
                geo = await self._geo.resolve(host_of(node.address))
                if geo is not None:
                    update["geo"] = geo
            if self._probe_latency and node.metrics.latency_ms == 0:
                latency = await probe_latency(node.address, self._probe_timeout)
                if latency is not None:
                    update["metrics"] = node.metrics.model_copy(update={"latency_ms": latency})
        if node.credits == 0 and node.pubkey and node.pubkey in credits:
            update["credits"] = credits[node.pubkey]
        return update

    async def _enrich_node(self, node: NodeRecord, credits: dict[str, int], semaphore: asyncio.Semaphore) -> NodeRecord:
        try:
            update = await self._lookup_fields(node, credits, semaphore)
        except Exception as exc:  # noqa: BLE001
            self._logger.warning(
                "node_enrich_failed",
                extra={"event": "fleet.enrich_failed", "node_id": node.identity, "error": repr(exc)},
            )
            return node
        if not update:
            return node
        return node.model_copy(update=update)

    async def enrich(self, snapshot: FleetSnapshot) -> FleetSnapshot:
        if not self.enabled or not snapshot.nodes:
            return snapshot
        credits = await self._credits.fetch() if self._credits is not None else {}
        semaphore = asyncio.Semaphore(self._concurrency)
        nodes = await asyncio.gather(*(self._enrich_node(node, credits, semaphore) for node in snapshot.nodes))
        self._logger.info("fleet_enriched", extra={"event": "fleet.enriched", "count": len(nodes)})
        return snapshot.model_copy(update={"nodes": list(nodes)})
