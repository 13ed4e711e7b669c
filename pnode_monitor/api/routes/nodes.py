from fastapi import APIRouter, Body, Depends, HTTPException, Query, status

from pnode_monitor.api.deps import get_lookup, get_poller, get_source_client
from pnode_monitor.api.routes.snapshot import current_snapshot
from pnode_monitor.errors import NodeNotFound, SourceUnavailable
from pnode_monitor.models.filters import FILTER_PRESETS, FilterOptions, FilterPreset, NodeFilters, NodeQueryResponse
from pnode_monitor.models.node import UNKNOWN_ADDRESS, FleetSnapshot, NodeRecord, utc_now
from pnode_monitor.models.score import HealthScoreBreakdown
from pnode_monitor.models.wire import host_of
from pnode_monitor.schemas.network import NodeLiveStats
from pnode_monitor.services.filter_engine import apply_preset, apply_scored, filter_options
from pnode_monitor.services.lookup import NodeLookup
from pnode_monitor.services.poller import FleetPoller
from pnode_monitor.services.score_engine import score
from pnode_monitor.services.source_client import SourceClient

router = APIRouter(prefix="/pnodes", tags=["pnodes"])


@router.get("", response_model=FleetSnapshot)
async def list_nodes(
    refresh: bool = Query(default=False),
    poller: FleetPoller = Depends(get_poller),
) -> FleetSnapshot:
    return await current_snapshot(poller, refresh=refresh)


@router.post("/query", response_model=NodeQueryResponse)
async def query_nodes(
    filters: NodeFilters | None = Body(default=None),
    preset: str | None = Query(default=None),
    poller: FleetPoller = Depends(get_poller),
) -> NodeQueryResponse:
    snapshot = await current_snapshot(poller)
    active = filters or NodeFilters()
    if preset:
        try:
            active = apply_preset(active, preset)
        except KeyError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    items = apply_scored(snapshot.nodes, active)
    return NodeQueryResponse(total=snapshot.total_count, matched=len(items), preset=preset, items=items)


@router.get("/filters/options", response_model=FilterOptions)
async def node_filter_options(poller: FleetPoller = Depends(get_poller)) -> FilterOptions:
    snapshot = await current_snapshot(poller)
    return filter_options(snapshot.nodes)


@router.get("/filters/presets", response_model=list[FilterPreset])
async def node_filter_presets() -> list[FilterPreset]:
    return list(FILTER_PRESETS)


async def _find(identity: str, poller: FleetPoller, lookup: NodeLookup) -> NodeRecord:
    try:
        return await lookup.find_node(identity, snapshot=poller.latest)
    except NodeNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.get("/{identity}", response_model=NodeRecord)
async def get_node(
    identity: str,
    poller: FleetPoller = Depends(get_poller),
    lookup: NodeLookup = Depends(get_lookup),
) -> NodeRecord:
    return await _find(identity, poller, lookup)


@router.get("/{identity}/score", response_model=HealthScoreBreakdown)
async def get_node_score(
    identity: str,
    poller: FleetPoller = Depends(get_poller),
    lookup: NodeLookup = Depends(get_lookup),
) -> HealthScoreBreakdown:
    node = await _find(identity, poller, lookup)
    return score(node)


@router.get("/{identity}/stats", response_model=NodeLiveStats)
async def get_node_stats(
    identity: str,
    poller: FleetPoller = Depends(get_poller),
    source_client: SourceClient = Depends(get_source_client),
) -> NodeLiveStats:
    # known nodes resolve to their host; anything else is taken as a host as given
    node = poller.latest.find(identity) if poller.latest is not None else None
    address = host_of(node.address) if node is not None and node.address != UNKNOWN_ADDRESS else identity
    try:
        stats = await source_client.fetch_stats(address)
    except SourceUnavailable as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    return NodeLiveStats(address=address, stats=stats, timestamp=utc_now())
