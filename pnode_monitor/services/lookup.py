from __future__ import annotations

from collections.abc import Sequence

from pnode_monitor.core.logging import get_logger
from pnode_monitor.errors import AllSourcesUnavailable, NodeNotFound
from pnode_monitor.models.node import FleetSnapshot, NodeRecord
from pnode_monitor.services.aggregator import Aggregator

logger = get_logger("pnode_monitor.lookup")


class NodeLookup:
    """Resolves one node from a snapshot, re-aggregating the seeds on a miss."""

    def __init__(self, aggregator: Aggregator, sources: Sequence[str], timeout_per_source: float = 10.0) -> None:
        self._aggregator = aggregator
        self._sources = list(sources)
        self._timeout = timeout_per_source

    async def find_node(self, identity: str, snapshot: FleetSnapshot | None = None) -> NodeRecord:
        key = identity.strip()
        if not key:
            raise NodeNotFound(identity)

        if snapshot is not None:
            node = snapshot.find(key)
            if node is not None:
                return node

        logger.info("node_lookup_refetch", extra={"event": "lookup.refetch", "node_id": key})
        try:
            fresh = await self._aggregator.fetch_fleet(self._sources, self._timeout)
        except AllSourcesUnavailable as exc:
            raise NodeNotFound(key) from exc

        node = fresh.find(key)
        if node is None:
            raise NodeNotFound(key)
        return node
