"""Process-wide component wiring.

main.py builds the components during lifespan and registers them here;
routers pull them in with `Depends(get_services)`.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import HTTPException

from tailorhub.jobs.dispatcher import JobDispatcher
from tailorhub.orders.draft_store import OrderDraftStore
from tailorhub.storage.asset_store import AssetStoreGateway
from tailorhub.tryon.invokers import EdgeFunctionInvoker
from tailorhub.tryon.orchestrator import TryOnOrchestrator


@dataclass
class Services:
    drafts: OrderDraftStore
    assets: AssetStoreGateway
    orchestrator: TryOnOrchestrator
    dispatcher: Optional[JobDispatcher] = None
    edge_invoker: Optional[EdgeFunctionInvoker] = None


_services: Optional[Services] = None


def set_services(services: Optional[Services]) -> None:
    global _services
    _services = services


def get_services() -> Services:
    if _services is None:
        raise HTTPException(status_code=503, detail="Services not initialized")
    return _services


def current_services() -> Optional[Services]:
    """The wired services, or None before startup finishes."""
    return _services
