from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime
from typing import Any

import httpx
from pydantic import ValidationError

from pnode_monitor.core.logging import get_logger
from pnode_monitor.errors import MalformedSourceResponse, SourceUnavailable
from pnode_monitor.models.node import NodeRecord, utc_now
from pnode_monitor.models.wire import PodRaw, to_node_record

GET_PODS_METHOD = "get-pods-with-stats"
GET_STATS_METHOD = "get-stats"


class SourceClient:
    """
    JSON-RPC client for one seed at a time.
    Every failure mode surfaces as SourceUnavailable; retry policy is the caller's.
    """

    def __init__(
        self,
        timeout: float = 10.0,
        rpc_port: int = 6000,
        rpc_path: str = "/rpc",
        seeds: Iterable[str] = (),
        transport: httpx.AsyncBaseTransport | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._timeout = timeout
        self._rpc_port = rpc_port
        self._rpc_path = "/" + rpc_path.lstrip("/")
        self._seeds = frozenset(seeds)
        self._logger = logger or get_logger("pnode_monitor.source_client")
        self._client = httpx.AsyncClient(
            timeout=self._timeout,
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> SourceClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def endpoint_url(self, address: str) -> str:
        if address.startswith(("http://", "https://")):
            return address
        return f"http://{address}:{self._rpc_port}{self._rpc_path}"

    def _format_error(self, exc: Exception) -> str:
        if isinstance(exc, httpx.HTTPStatusError):
            detail = (exc.response.text or "").strip().replace("\n", " ")
            if len(detail) > 220:
                detail = f"{detail[:220]}..."
            return f"status={exc.response.status_code} url={exc.request.url} detail={detail}"
        if isinstance(exc, httpx.RequestError):
            return f"{exc.__class__.__name__} url={exc.request.url} detail={exc}"
        return str(exc) or exc.__class__.__name__

    async def _call(self, address: str, method: str) -> Any:
        body = {"jsonrpc": "2.0", "method": method, "id": 1}
        try:
            response = await self._client.post(self.endpoint_url(address), json=body)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise SourceUnavailable(address, self._format_error(exc)) from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise MalformedSourceResponse(address, "response is not JSON") from exc
        if not isinstance(payload, dict):
            raise MalformedSourceResponse(address, "response is not a JSON-RPC object")
        if payload.get("error"):
            raise SourceUnavailable(address, f"rpc_error={payload['error']}")
        if "result" not in payload:
            raise MalformedSourceResponse(address, "missing result")
        return payload["result"]

    def _extract_pods(self, address: str, result: Any) -> list[Any]:
        if isinstance(result, list):
            return result
        if isinstance(result, dict) and isinstance(result.get("pods"), list):
            return result["pods"]
        raise MalformedSourceResponse(address, "result carries no pod list")

    async def fetch_pods(self, address: str) -> list[PodRaw]:
        result = await self._call(address, GET_PODS_METHOD)
        pods: list[PodRaw] = []
        skipped = 0
        for item in self._extract_pods(address, result):
            if not isinstance(item, dict):
                skipped += 1
                continue
            try:
                pod = PodRaw.model_validate(item)
            except ValidationError:
                skipped += 1
                continue
            if pod.identity is None:
                skipped += 1
                continue
            pods.append(pod)
        if skipped:
            self._logger.warning(
                "source_pods_skipped",
                extra={"event": "source.pods_skipped", "source": address, "skipped": skipped},
            )
        return pods

    async def fetch_nodes(self, address: str, now: datetime | None = None) -> list[NodeRecord]:
        pods = await self.fetch_pods(address)
        now = now or utc_now()
        records: list[NodeRecord] = []
        for pod in pods:
            try:
                records.append(to_node_record(pod, source_address=address, seeds=self._seeds, now=now))
            except (ValueError, OverflowError, OSError) as exc:
                self._logger.warning(
                    "source_pod_rejected",
                    extra={"event": "source.pod_rejected", "source": address, "node_id": pod.identity, "error": str(exc)},
                )
        return records

    async def fetch_stats(self, address: str) -> dict[str, Any]:
        """Live stats straight from one node's RPC endpoint; nothing is cached."""
        result = await self._call(address, GET_STATS_METHOD)
        if not isinstance(result, dict):
            raise MalformedSourceResponse(address, "stats result is not an object")
        return result
