"""Order record and its lifecycle."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class OrderStatus(str, Enum):
    DRAFT = "draft"
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = {OrderStatus.COMPLETED, OrderStatus.CANCELLED}

# Forward-only chain; CANCELLED is reachable from any non-terminal state
_FORWARD = [
    OrderStatus.DRAFT,
    OrderStatus.PENDING,
    OrderStatus.IN_PROGRESS,
    OrderStatus.COMPLETED,
]


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    """True if `target` is a legal next status (or equal to `current`)."""
    if current == target:
        return True
    if current in TERMINAL_STATUSES:
        return False
    if target == OrderStatus.CANCELLED:
        return True
    return _FORWARD.index(target) > _FORWARD.index(current)


# Columns a customer may write while the wizard is open
CUSTOMER_FIELDS = frozenset({
    "tailor_id",
    "customer_name",
    "customer_phone",
    "customer_email",
    "measurements",
    "measurements_complete",
    "photo_urls",
    "customer_photo_url",
    "style_photo_url",
    "style_id",
    "fabric_type",
    "design_notes",
    "design_image_url",
})


class Order(BaseModel):
    id: str
    tailor_id: Optional[str] = None
    customer_user_id: Optional[str] = None
    customer_name: str = ""
    customer_phone: str = ""
    customer_email: Optional[str] = None
    measurements: Optional[Dict[str, Any]] = None
    measurements_complete: bool = False
    photo_urls: List[str] = Field(default_factory=list)
    customer_photo_url: Optional[str] = None
    style_photo_url: Optional[str] = None
    style_id: Optional[str] = None
    fabric_type: Optional[str] = None
    design_notes: Optional[str] = None
    design_image_url: Optional[str] = None
    status: OrderStatus = OrderStatus.DRAFT
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Order":
        row = {k: v for k, v in row.items() if k in cls.model_fields}
        if row.get("photo_urls") is None:
            row.pop("photo_urls", None)
        return cls.model_validate(row)

    @property
    def visible_to_tailor(self) -> bool:
        return self.status != OrderStatus.DRAFT
