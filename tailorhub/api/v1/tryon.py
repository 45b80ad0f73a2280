"""Try-on API - submit generation jobs, poll status, or run with fallback."""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from tailorhub.auth.supabase_auth import verify_jwt
from tailorhub.errors import NotFoundError, TransientIOError
from tailorhub.services import Services, get_services
from tailorhub.tryon.models import TryOnRequest

router = APIRouter()


class TryOnSubmitRequest(BaseModel):
    order_id: str
    customer_photo_url: str
    style_photo_url: str
    measurements: Optional[Dict[str, Any]] = None


class TryOnSubmitResponse(BaseModel):
    job_id: str
    status: str
    message: str


class TryOnPreviewRequest(TryOnSubmitRequest):
    fallback_url: Optional[str] = None


def _to_request(body: TryOnSubmitRequest) -> TryOnRequest:
    return TryOnRequest(
        order_id=body.order_id,
        customer_photo_url=body.customer_photo_url,
        style_photo_url=body.style_photo_url,
        measurements=body.measurements,
    )


@router.post("/tryon", response_model=TryOnSubmitResponse)
async def submit_tryon(
    body: TryOnSubmitRequest,
    user_id: str = Depends(verify_jwt),
    services: Services = Depends(get_services),
):
    """Start an AI try-on generation for an order the caller can access."""
    result = await services.orchestrator.submit(_to_request(body), user_id)
    if result.error:
        if result.error == "Order not found":
            raise HTTPException(status_code=404, detail=result.error)
        status = 502 if result.job_id else 400
        raise HTTPException(status_code=status, detail=result.error)

    return TryOnSubmitResponse(
        job_id=result.job_id,
        status="queued",
        message="Try-on job submitted. Poll GET /api/v1/tryon/{id} for status.",
    )


@router.get("/tryon/{job_id}")
async def get_tryon_status(
    job_id: str,
    user_id: str = Depends(verify_jwt),
    services: Services = Depends(get_services),
):
    """Current job state. Reading never changes the job."""
    try:
        job = await services.orchestrator.get_job(job_id)
    except TransientIOError:
        raise HTTPException(status_code=502, detail="Failed to check status")
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")

    try:
        await services.drafts.can_access(job.order_id, user_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Job not found")
    except TransientIOError:
        raise HTTPException(status_code=502, detail="Failed to check status")

    response = {
        "job_id": job.id,
        "order_id": job.order_id,
        "status": job.status.value,
        "created_at": job.created_at.isoformat() if job.created_at else None,
        "updated_at": job.updated_at.isoformat() if job.updated_at else None,
    }
    if job.output_url:
        response["output_url"] = job.output_url
    if job.error_msg:
        response["error"] = job.error_msg
    return response


@router.post("/tryon/preview")
async def generate_preview(
    body: TryOnPreviewRequest,
    user_id: str = Depends(verify_jwt),
    services: Services = Depends(get_services),
):
    """Submit and wait in one call. Always answers with an image URL.

    Falls back to the style photo (or the given fallback_url) when the AI
    path fails or times out.
    """
    result = await services.orchestrator.generate_with_fallback(
        _to_request(body),
        fallback_url=body.fallback_url or body.style_photo_url,
        user_id=user_id,
    )
    return result.model_dump()
