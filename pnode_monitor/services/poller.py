from __future__ import annotations

import asyncio
from collections.abc import Sequence
from datetime import datetime

from pnode_monitor.core.logging import get_logger
from pnode_monitor.errors import AllSourcesUnavailable
from pnode_monitor.models.node import FleetSnapshot, utc_now
from pnode_monitor.services.aggregator import Aggregator
from pnode_monitor.services.enrichment import FleetEnricher

logger = get_logger("pnode_monitor.poller")


async def _sleep_or_stop(stop_event: asyncio.Event, seconds: float) -> None:
    try:
        await asyncio.wait_for(stop_event.wait(), timeout=seconds)
    except asyncio.TimeoutError:
        return


class FleetPoller:
    """
    Caller-owned refresh loop around the stateless Aggregator.
    Keeps the latest good snapshot; polls never overlap.
    """

    def __init__(
        self,
        aggregator: Aggregator,
        sources: Sequence[str],
        timeout_per_source: float = 10.0,
        interval_sec: float = 30.0,
        deadline_sec: float | None = None,
        enricher: FleetEnricher | None = None,
    ) -> None:
        self._aggregator = aggregator
        self._sources = list(sources)
        self._timeout = timeout_per_source
        self._interval = interval_sec
        self._deadline = deadline_sec
        self._enricher = enricher
        self._lock = asyncio.Lock()
        self.latest: FleetSnapshot | None = None
        self.last_error: str | None = None
        self.last_poll_at: datetime | None = None

    @property
    def sources(self) -> list[str]:
        return list(self._sources)

    async def _poll(self) -> FleetSnapshot:
        snapshot = await self._aggregator.fetch_fleet(self._sources, self._timeout)
        if self._enricher is None:
            return snapshot
        try:
            return await self._enricher.enrich(snapshot)
        except Exception as exc:  # noqa: BLE001
            logger.warning("enrich_failed", extra={"event": "fleet.enrich_failed", "error": repr(exc)})
            return snapshot

    async def poll_once(self) -> FleetSnapshot:
        async with self._lock:
            self.last_poll_at = utc_now()
            try:
                if self._deadline:
                    snapshot = await asyncio.wait_for(self._poll(), timeout=self._deadline)
                else:
                    snapshot = await self._poll()
            except asyncio.TimeoutError as exc:
                self.last_error = f"poll_deadline_exceeded after {self._deadline:g}s"
                logger.warning("poll_abandoned", extra={"event": "poll.abandoned", "error": self.last_error})
                raise AllSourcesUnavailable({source: "poll deadline exceeded" for source in self._sources}) from exc
            except AllSourcesUnavailable as exc:
                self.last_error = str(exc)
                logger.error("poll_failed", extra={"event": "poll.failed", "error": self.last_error})
                raise
            self.latest = snapshot
            self.last_error = None
            return snapshot

    async def current(self) -> FleetSnapshot:
        if self.latest is None:
            return await self.poll_once()
        return self.latest

    async def run(self, stop_event: asyncio.Event) -> None:
        while not stop_event.is_set():
            try:
                await self.poll_once()
            except AllSourcesUnavailable:
                # already logged; keep serving the previous snapshot
                pass
            except Exception as exc:  # noqa: BLE001
                self.last_error = f"poll_crashed: {exc!r}"
                logger.exception("poll_crashed", extra={"event": "poll.crashed", "error": self.last_error})
            await _sleep_or_stop(stop_event, self._interval)
