from pnode_monitor.api.routes.network import router as network_router
from pnode_monitor.api.routes.nodes import router as nodes_router

__all__ = ["network_router", "nodes_router"]
