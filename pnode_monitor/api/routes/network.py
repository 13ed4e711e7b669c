from fastapi import APIRouter, Depends

from pnode_monitor.api.deps import get_poller
from pnode_monitor.api.routes.snapshot import current_snapshot
from pnode_monitor.models.score import NetworkHealthStats
from pnode_monitor.schemas.network import NetworkStats, build_network_stats
from pnode_monitor.services.poller import FleetPoller
from pnode_monitor.services.score_engine import network_health_stats

router = APIRouter(prefix="/network", tags=["network"])


@router.get("/stats", response_model=NetworkStats)
async def network_stats(poller: FleetPoller = Depends(get_poller)) -> NetworkStats:
    return build_network_stats(await current_snapshot(poller))


@router.get("/health", response_model=NetworkHealthStats)
async def network_health(poller: FleetPoller = Depends(get_poller)) -> NetworkHealthStats:
    snapshot = await current_snapshot(poller)
    return network_health_stats(snapshot.nodes)
