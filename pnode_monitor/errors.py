from __future__ import annotations


class MonitorError(Exception):
    """Base class for fleet aggregation failures."""


class SourceUnavailable(MonitorError):
    def __init__(self, source: str, reason: str) -> None:
        super().__init__(f"source_unavailable: {source}: {reason}")
        self.source = source
        self.reason = reason


class MalformedSourceResponse(SourceUnavailable):
    """The seed answered, but not with a pod list we can read."""


class AllSourcesUnavailable(MonitorError):
    def __init__(self, failures: dict[str, str]) -> None:
        count = len(failures)
        super().__init__(f"all_sources_unavailable: {count} source(s) failed")
        self.failures = failures


class NodeNotFound(MonitorError):
    def __init__(self, identity: str) -> None:
        super().__init__(f"node_not_found: {identity}")
        self.identity = identity
