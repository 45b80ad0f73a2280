"""Structured record store: orders, tailors and try-on jobs.

Components depend on the RecordStore protocol only. SupabaseRecordStore is
the production adapter over PostgREST; tests pass an in-memory fake.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Protocol

from supabase import Client

from tailorhub.db.supabase_client import run_sync
from tailorhub.errors import TransientIOError, ValidationError

logger = logging.getLogger(__name__)

ORDERS_TABLE = "orders"
TAILORS_TABLE = "tailors"
TRYON_JOBS_TABLE = "tryon_jobs"

# A job may only be written while it is still in one of these states
OPEN_JOB_STATUSES = ("queued", "processing")


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class RecordStore(Protocol):
    async def insert_order(self, row: Dict[str, Any]) -> Dict[str, Any]: ...

    async def get_order(self, order_id: str) -> Optional[Dict[str, Any]]: ...

    async def update_order(self, order_id: str, fields: Dict[str, Any]) -> Dict[str, Any]: ...

    async def get_tailor_user_id(self, tailor_id: str) -> Optional[str]: ...

    async def insert_job(self, row: Dict[str, Any]) -> Dict[str, Any]: ...

    async def get_job(self, job_id: str) -> Optional[Dict[str, Any]]: ...

    async def update_job(self, job_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Write to a job that is still queued/processing.

        Raises ValidationError if the job is already terminal.
        """
        ...


class SupabaseRecordStore:
    """RecordStore backed by the service-role Supabase client."""

    def __init__(self, client: Client):
        self._client = client

    async def _execute(self, query, action: str):
        try:
            return await run_sync(query.execute)
        except Exception as e:
            logger.error("Supabase %s failed: %s", action, e)
            raise TransientIOError(f"Could not {action}") from e

    async def _first(self, table: str, column: str, value: str, action: str) -> Optional[Dict[str, Any]]:
        query = self._client.table(table).select("*").eq(column, value).limit(1)
        response = await self._execute(query, action)
        return response.data[0] if response.data else None

    async def insert_order(self, row: Dict[str, Any]) -> Dict[str, Any]:
        query = self._client.table(ORDERS_TABLE).insert(row)
        response = await self._execute(query, "create order")
        return response.data[0]

    async def get_order(self, order_id: str) -> Optional[Dict[str, Any]]:
        return await self._first(ORDERS_TABLE, "id", order_id, "load order")

    async def update_order(self, order_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        fields = {**fields, "updated_at": utcnow_iso()}
        query = self._client.table(ORDERS_TABLE).update(fields).eq("id", order_id)
        response = await self._execute(query, "save order")
        if not response.data:
            raise ValidationError(f"Order {order_id} not found")
        return response.data[0]

    async def get_tailor_user_id(self, tailor_id: str) -> Optional[str]:
        tailor = await self._first(TAILORS_TABLE, "id", tailor_id, "load tailor")
        return tailor.get("user_id") if tailor else None

    async def insert_job(self, row: Dict[str, Any]) -> Dict[str, Any]:
        query = self._client.table(TRYON_JOBS_TABLE).insert(row)
        response = await self._execute(query, "create try-on job")
        return response.data[0]

    async def get_job(self, job_id: str) -> Optional[Dict[str, Any]]:
        return await self._first(TRYON_JOBS_TABLE, "id", job_id, "check try-on status")

    async def update_job(self, job_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        fields = {**fields, "updated_at": utcnow_iso()}
        query = (
            self._client.table(TRYON_JOBS_TABLE)
            .update(fields)
            .eq("id", job_id)
            .in_("status", list(OPEN_JOB_STATUSES))
        )
        response = await self._execute(query, "update try-on job")
        if not response.data:
            raise ValidationError(f"Try-on job {job_id} is missing or already finished")
        return response.data[0]
