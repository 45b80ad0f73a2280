"""TailorHub order service - FastAPI application."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tailorhub.api.v1.health import router as health_root_router
from tailorhub.api.v1.router import v1_router
from tailorhub.config import settings
from tailorhub.db.records import SupabaseRecordStore
from tailorhub.db.supabase_client import get_supabase
from tailorhub.jobs.in_process_queue import InProcessQueue
from tailorhub.orders.draft_store import OrderDraftStore
from tailorhub.services import Services, set_services
from tailorhub.storage.asset_store import AssetStoreGateway, SupabaseObjectStore
from tailorhub.tryon.generator import ReplicateGenerator
from tailorhub.tryon.invokers import EdgeFunctionInvoker, LocalWorkerInvoker
from tailorhub.tryon.orchestrator import TryOnOrchestrator
from tailorhub.tryon.worker import TryOnWorker

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def build_services(client) -> Services:
    """Wire every component against one Supabase client."""
    records = SupabaseRecordStore(client)
    assets = AssetStoreGateway(SupabaseObjectStore(client))
    drafts = OrderDraftStore(records)

    dispatcher = None
    edge_invoker = None
    if settings.tryon_dispatch_mode == "edge":
        invoker = edge_invoker = EdgeFunctionInvoker(records)
    else:
        worker = TryOnWorker(records, assets, ReplicateGenerator())
        dispatcher = InProcessQueue(worker_fn=worker.run)
        invoker = LocalWorkerInvoker(dispatcher)

    orchestrator = TryOnOrchestrator(records, drafts, invoker)
    return Services(drafts=drafts, assets=assets, orchestrator=orchestrator, dispatcher=dispatcher,
                    edge_invoker=edge_invoker)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown logic."""
    logger.info("Starting TailorHub order service on port %s", settings.service_port)
    logger.info("Try-on dispatch mode: %s", settings.tryon_dispatch_mode)

    services = build_services(get_supabase())
    if services.dispatcher is not None:
        await services.dispatcher.start()
        logger.info("Try-on worker started")
    set_services(services)

    yield

    logger.info("Shutting down TailorHub order service")
    if services.dispatcher is not None:
        await services.dispatcher.stop()
    if services.edge_invoker is not None:
        await services.edge_invoker.join()
    set_services(None)


app = FastAPI(
    title="TailorHub Order Service",
    description="Order wizard backend: photo preparation, draft orders and AI try-on previews",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Mount routers
app.include_router(health_root_router, tags=["health"])  # GET /health at root
app.include_router(v1_router)  # All /api/v1/* endpoints
