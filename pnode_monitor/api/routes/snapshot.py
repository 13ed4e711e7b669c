from fastapi import HTTPException, status

from pnode_monitor.errors import AllSourcesUnavailable
from pnode_monitor.models.node import FleetSnapshot
from pnode_monitor.services.poller import FleetPoller


async def current_snapshot(poller: FleetPoller, refresh: bool = False) -> FleetSnapshot:
    try:
        if refresh:
            return await poller.poll_once()
        return await poller.current()
    except AllSourcesUnavailable as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
