"""Try-on job record and orchestrator outcomes."""

from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Optional

from pydantic import BaseModel, Field


class TryOnStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TryOnStatus.DONE, TryOnStatus.FAILED)


class TryOnRequest(BaseModel):
    order_id: str
    customer_photo_url: str
    style_photo_url: str
    measurements: Optional[Dict[str, Any]] = None


class TryOnJob(BaseModel):
    """Row in tryon_jobs. Written by the worker exactly once it finishes."""
    id: str
    order_id: str
    input_payload: Dict[str, Any] = Field(default_factory=dict)
    measurement_data: Optional[Dict[str, Any]] = None
    status: TryOnStatus = TryOnStatus.QUEUED
    output_url: Optional[str] = None
    error_msg: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "TryOnJob":
        return cls.model_validate({k: v for k, v in row.items() if k in cls.model_fields})

    @property
    def customer_photo_url(self) -> Optional[str]:
        return self.input_payload.get("customer_photo_url")

    @property
    def style_photo_url(self) -> Optional[str]:
        return self.input_payload.get("style_photo_url")


class SubmitResult(BaseModel):
    job_id: Optional[str] = None
    error: Optional[str] = None


class PollResult(BaseModel):
    status: TryOnStatus
    output_url: Optional[str] = None
    error_msg: Optional[str] = None


class WaitResult(BaseModel):
    success: bool
    output_url: Optional[str] = None
    error: Optional[str] = None
    attempts: int = 0


class FallbackResult(BaseModel):
    url: str
    is_fallback: bool
    error: Optional[str] = None
    job_id: Optional[str] = None


# fn(attempt_number, status)
PollProgressCallback = Callable[[int, TryOnStatus], None]

# fn(message) for user-facing status lines
MessageCallback = Callable[[str], None]
