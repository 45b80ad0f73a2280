"""Supabase JWT validation dependency for FastAPI."""

import logging
from typing import Optional

from fastapi import Header, HTTPException
from supabase import create_client

from tailorhub.config import settings
from tailorhub.db.supabase_client import run_sync

logger = logging.getLogger(__name__)


async def _lookup_user(token: str):
    client = create_client(settings.supabase_url, settings.supabase_anon_key)
    user_response = await run_sync(client.auth.get_user, token)
    return user_response.user if user_response else None


async def verify_jwt(authorization: str = Header(None)) -> str:
    """Validate Supabase JWT from Authorization header.

    Returns the authenticated user's id.
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Not authenticated")

    token = authorization.replace("Bearer ", "")
    try:
        user = await _lookup_user(token)
    except Exception as e:
        logger.info("Token rejected: %s", e)
        raise HTTPException(status_code=401, detail="Invalid token")
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid token")
    return user.id
