"""Order draft API - autosave, finalize, tailor status updates."""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from tailorhub.auth.supabase_auth import verify_jwt
from tailorhub.errors import NotFoundError, TransientIOError
from tailorhub.orders.measurements import validate_measurements
from tailorhub.orders.models import OrderStatus
from tailorhub.services import Services, get_services

router = APIRouter()


class DraftSaveRequest(BaseModel):
    fields: Dict[str, Any]
    session_id: Optional[str] = None


class StatusUpdateRequest(BaseModel):
    status: OrderStatus


def _raise_for(error: str, not_found_status: int = 404) -> None:
    if error == "Order not found":
        raise HTTPException(status_code=not_found_status, detail=error)
    if error.startswith("Could not") or error.startswith("Failed"):
        raise HTTPException(status_code=502, detail=error)
    raise HTTPException(status_code=400, detail=error)


@router.post("/orders/draft")
async def create_draft(
    request: DraftSaveRequest,
    user_id: str = Depends(verify_jwt),
    services: Services = Depends(get_services),
):
    """Autosave without an order id yet.

    Returns order_id=null until the name and phone are both present.
    """
    result = await services.drafts.save(
        None, request.fields, user_id=user_id, session_id=request.session_id
    )
    if result.error:
        _raise_for(result.error)
    return {"order_id": result.order_id, "created": result.created}


@router.patch("/orders/{order_id}")
async def update_draft(
    order_id: str,
    request: DraftSaveRequest,
    user_id: str = Depends(verify_jwt),
    services: Services = Depends(get_services),
):
    result = await services.drafts.save(order_id, request.fields, user_id=user_id)
    if result.error:
        _raise_for(result.error)
    return {"order_id": result.order_id}


@router.get("/orders/{order_id}")
async def get_order(
    order_id: str,
    user_id: str = Depends(verify_jwt),
    services: Services = Depends(get_services),
):
    try:
        order = await services.drafts.can_access(order_id, user_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Order not found")
    except TransientIOError:
        raise HTTPException(status_code=502, detail="Could not load order")
    if order.customer_user_id != user_id and not order.visible_to_tailor:
        raise HTTPException(status_code=404, detail="Order not found")
    return order.model_dump(mode="json")


@router.post("/orders/{order_id}/finalize")
async def finalize_order(
    order_id: str,
    user_id: str = Depends(verify_jwt),
    services: Services = Depends(get_services),
):
    """Send the order to the tailor. Safe to call more than once."""
    result = await services.drafts.finalize(order_id, user_id=user_id)
    if not result.success:
        _raise_for(result.error)
    return {"order_id": order_id, "status": result.status.value}


@router.patch("/orders/{order_id}/status")
async def update_status(
    order_id: str,
    request: StatusUpdateRequest,
    user_id: str = Depends(verify_jwt),
    services: Services = Depends(get_services),
):
    result = await services.drafts.update_status(order_id, request.status, user_id)
    if not result.success:
        if result.error == "Only the tailor can change the order status":
            raise HTTPException(status_code=403, detail=result.error)
        _raise_for(result.error)
    return {"order_id": order_id, "status": result.status.value}


@router.post("/measurements/validate")
async def check_measurements(measurements: Dict[str, Any]):
    """Validate a measurement form without saving it."""
    check = validate_measurements(measurements)
    return {
        "valid": check.valid,
        "errors": check.errors,
        "measurements": check.measurements.to_document() if check.measurements else None,
    }
