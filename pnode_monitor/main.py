import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
import sys

import httpx
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from pnode_monitor import __version__
from pnode_monitor.api.deps import get_poller, get_settings as settings_dependency
from pnode_monitor.api.routes import network_router, nodes_router
from pnode_monitor.core.config import Settings, get_settings
from pnode_monitor.core.logging import configure_logging, get_logger
from pnode_monitor.models.node import utc_now
from pnode_monitor.schemas.network import ServiceHealth
from pnode_monitor.services.aggregator import Aggregator
from pnode_monitor.services.enrichment import CreditsClient, FleetEnricher, GeoResolver
from pnode_monitor.services.lookup import NodeLookup
from pnode_monitor.services.poller import FleetPoller
from pnode_monitor.services.source_client import SourceClient

logger = get_logger("pnode_monitor.main")

if sys.platform.startswith("win"):
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())


def _build_enricher(settings: Settings, client: httpx.AsyncClient) -> FleetEnricher | None:
    enricher = FleetEnricher(
        geo=GeoResolver(settings.geo_api_url, client) if settings.geo_lookup_enabled else None,
        credits=CreditsClient(settings.credits_url, client) if settings.credits_enabled else None,
        probe_latency_enabled=settings.latency_probe_enabled,
        probe_timeout=settings.latency_probe_timeout_sec,
    )
    return enricher if enricher.enabled else None


def create_app(
    settings: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        configure_logging(settings.log_level, json_output=settings.log_json)
        seeds = settings.seed_ips_list

        source_client = SourceClient(
            timeout=settings.source_timeout_sec,
            rpc_port=settings.rpc_port,
            rpc_path=settings.rpc_path,
            seeds=seeds,
            transport=transport,
        )
        http_client = httpx.AsyncClient(timeout=settings.source_timeout_sec, transport=transport)
        aggregator = Aggregator(source_client)
        poller = FleetPoller(
            aggregator,
            seeds,
            timeout_per_source=settings.source_timeout_sec,
            interval_sec=settings.refresh_interval_sec,
            deadline_sec=settings.poll_deadline_sec,
            enricher=_build_enricher(settings, http_client),
        )

        app.state.settings = settings
        app.state.poller = poller
        app.state.source_client = source_client
        app.state.lookup = NodeLookup(aggregator, seeds, settings.source_timeout_sec)

        stop_event = asyncio.Event()
        app.state.poll_task = asyncio.create_task(poller.run(stop_event))
        logger.info("service_started", extra={"event": "service.started", "seeds": len(seeds)})

        try:
            yield
        finally:
            stop_event.set()
            app.state.poll_task.cancel()
            try:
                await app.state.poll_task
            except asyncio.CancelledError:
                pass
            await source_client.close()
            await http_client.aclose()
            logger.info("service_stopped", extra={"event": "service.stopped"})

    app = FastAPI(
        title=settings.app_name,
        version=__version__,
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(nodes_router, prefix=settings.api_v1_prefix)
    app.include_router(network_router, prefix=settings.api_v1_prefix)

    @app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @app.get(f"{settings.api_v1_prefix}/health", response_model=ServiceHealth)
    async def service_health(
        current: Settings = Depends(settings_dependency),
        poller: FleetPoller = Depends(get_poller),
    ) -> ServiceHealth:
        return ServiceHealth(
            service=current.app_name,
            version=current.app_version,
            seed_ips=current.seed_ips_list,
            last_poll_at=poller.last_poll_at,
            last_error=poller.last_error,
            timestamp=utc_now(),
        )

    return app


app = create_app()
