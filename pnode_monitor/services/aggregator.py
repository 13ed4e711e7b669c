from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, field
from time import perf_counter

from pnode_monitor.core.logging import get_logger
from pnode_monitor.errors import AllSourcesUnavailable, SourceUnavailable
from pnode_monitor.models.node import FleetSnapshot, NodeRecord, utc_now
from pnode_monitor.services.source_client import SourceClient

logger = get_logger("pnode_monitor.aggregator")


@dataclass
class SourceResult:
    source: str
    nodes: list[NodeRecord] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def merge_results(results: Sequence[SourceResult]) -> FleetSnapshot:
    """
    Union of every successful source in list order, first occurrence wins.
    Later duplicates are dropped whole, never merged field by field.
    """
    seen: set[str] = set()
    merged: list[NodeRecord] = []
    dropped = 0
    for result in results:
        if not result.ok:
            continue
        for node in result.nodes:
            if node.identity in seen:
                dropped += 1
                continue
            seen.add(node.identity)
            merged.append(node)

    failed = [result.source for result in results if not result.ok]
    return FleetSnapshot(
        nodes=merged,
        total_count=len(merged),
        duplicates_dropped=dropped,
        sources_total=len(results),
        sources_failed=len(failed),
        failed_sources=failed,
        fetched_at=utc_now(),
    )


class Aggregator:
    """Stateless fan-out over seeds; each call returns a fresh snapshot."""

    def __init__(self, client: SourceClient) -> None:
        self._client = client

    async def _fetch_source(self, source: str, timeout: float) -> SourceResult:
        started = perf_counter()
        try:
            nodes = await asyncio.wait_for(self._client.fetch_nodes(source), timeout=timeout)
        except asyncio.TimeoutError:
            error = f"timeout after {timeout:g}s"
        except SourceUnavailable as exc:
            error = exc.reason
        except Exception as exc:  # noqa: BLE001
            error = f"{exc.__class__.__name__}: {exc}"
        else:
            logger.info(
                "source_fetched",
                extra={
                    "event": "source.fetched",
                    "source": source,
                    "count": len(nodes),
                    "elapsed_ms": int((perf_counter() - started) * 1000),
                },
            )
            return SourceResult(source=source, nodes=nodes)

        logger.warning("source_unavailable", extra={"event": "source.unavailable", "source": source, "error": error})
        return SourceResult(source=source, error=error)

    async def collect(self, sources: Sequence[str], timeout_per_source: float) -> list[SourceResult]:
        tasks = [self._fetch_source(source, timeout_per_source) for source in sources]
        return list(await asyncio.gather(*tasks))

    async def fetch_fleet(self, sources: Sequence[str], timeout_per_source: float = 10.0) -> FleetSnapshot:
        results = await self.collect(sources, timeout_per_source)
        if not any(result.ok for result in results):
            raise AllSourcesUnavailable({result.source: result.error or "" for result in results})

        snapshot = merge_results(results)
        logger.info(
            "fleet_aggregated",
            extra={
                "event": "fleet.aggregated",
                "count": snapshot.total_count,
                "duplicates_dropped": snapshot.duplicates_dropped,
                "sources_failed": snapshot.sources_failed,
            },
        )
        return snapshot
