"""Health check endpoint."""

import platform
import sys

from fastapi import APIRouter

from tailorhub.services import current_services
from tailorhub.config import settings

router = APIRouter()


@router.get("/health")
async def health_check():
    """Service health, try-on worker status, and system info."""
    wired = current_services()
    dispatcher = wired.dispatcher if wired else None

    return {
        "status": "healthy" if wired else "starting",
        "tryon_dispatch_mode": settings.tryon_dispatch_mode,
        "tryon_worker_running": dispatcher.running if dispatcher else None,
        "tryon_jobs_queued": dispatcher.pending_count() if dispatcher else None,
        "ai_configured": bool(settings.replicate_api_token),
        "python_version": sys.version,
        "platform": platform.platform(),
    }
