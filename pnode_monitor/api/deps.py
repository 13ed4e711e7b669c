from starlette.requests import HTTPConnection

from pnode_monitor.core.config import Settings
from pnode_monitor.services.lookup import NodeLookup
from pnode_monitor.services.poller import FleetPoller
from pnode_monitor.services.source_client import SourceClient


def get_settings(connection: HTTPConnection) -> Settings:
    return connection.app.state.settings


def get_poller(connection: HTTPConnection) -> FleetPoller:
    return connection.app.state.poller


def get_lookup(connection: HTTPConnection) -> NodeLookup:
    return connection.app.state.lookup


def get_source_client(connection: HTTPConnection) -> SourceClient:
    return connection.app.state.source_client
