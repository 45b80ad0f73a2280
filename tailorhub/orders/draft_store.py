"""Order draft persistence for the order wizard.

save() creates the order on the first call that carries a name and phone,
then merges later edits into the same row. Creation is serialised per
session so rapid concurrent autosaves cannot produce duplicate orders.
A session only ever merges into its own draft; once that order is
submitted the session is released."""

import asyncio
import logging
from collections import defaultdict
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel

from tailorhub.db.records import RecordStore
from tailorhub.errors import (
    NotAuthenticatedError,
    NotFoundError,
    PreconditionError,
    TailorHubError,
    TransientIOError,
    ValidationError,
)
from tailorhub.orders.measurements import (
    are_measurements_complete,
    parse_partial_measurements,
)
from tailorhub.orders.models import (
    CUSTOMER_FIELDS,
    TERMINAL_STATUSES,
    Order,
    OrderStatus,
    can_transition,
)

logger = logging.getLogger(__name__)

EDITABLE_STATUSES = {OrderStatus.DRAFT, OrderStatus.PENDING}

SessionKey = Tuple[str, str]


class SaveResult(BaseModel):
    order_id: Optional[str] = None
    created: bool = False
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class FinalizeResult(BaseModel):
    success: bool
    status: Optional[OrderStatus] = None
    error: Optional[str] = None


class StatusUpdateResult(BaseModel):
    success: bool
    status: Optional[OrderStatus] = None
    error: Optional[str] = None


def _normalise_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    unknown = set(fields) - CUSTOMER_FIELDS
    if unknown:
        raise ValidationError(f"Unknown order fields: {', '.join(sorted(unknown))}")

    row = dict(fields)
    if "measurements" in row and row["measurements"] is not None:
        check = parse_partial_measurements(row["measurements"])
        if not check.valid:
            raise ValidationError(check.first_error)
        document = check.measurements.to_document()
        row["measurements"] = document
        row["measurements_complete"] = are_measurements_complete(document)
    for key in ("customer_name", "customer_phone", "customer_email"):
        if isinstance(row.get(key), str):
            row[key] = row[key].strip()
    if row.get("customer_email") == "":
        row["customer_email"] = None
    return row


class OrderDraftStore:
    def __init__(self, records: RecordStore):
        self._records = records
        # Keyed by (user_id, session_id); entries go away when the session ends
        self._create_locks: Dict[SessionKey, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._pinned: Dict[SessionKey, str] = {}

    async def get(self, order_id: str) -> Optional[Order]:
        row = await self._records.get_order(order_id)
        return Order.from_row(row) if row else None

    async def can_access(self, order_id: str, user_id: Optional[str]) -> Order:
        """Return the order if `user_id` is its customer or assigned tailor.

        Raises NotAuthenticatedError / NotFoundError otherwise.
        """
        if not user_id:
            raise NotAuthenticatedError()
        order = await self.get(order_id)
        if order is None:
            raise NotFoundError("Order not found")
        if order.customer_user_id == user_id:
            return order
        if order.tailor_id and await self._records.get_tailor_user_id(order.tailor_id) == user_id:
            return order
        raise NotFoundError("Order not found")

    async def save(
        self,
        order_id: Optional[str],
        fields: Dict[str, Any],
        user_id: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> SaveResult:
        """Create or partially update a draft order.

        Without an order id, nothing is written until customer_name and
        customer_phone are both present; the result then has order_id=None
        and no error. With a session_id, creates within that wizard session
        are serialised and later id-less saves merge into the same draft.
        Without one, every id-less save that has a name and phone creates a
        new order; callers then continue with the returned id.
        """
        try:
            if not user_id:
                raise NotAuthenticatedError()
            row = _normalise_fields(fields)
            if order_id:
                await self._update(order_id, row, user_id)
                return SaveResult(order_id=order_id)
            if session_id is None:
                return await self._create(row, user_id)
            return await self._create_or_merge(row, (user_id, session_id))
        except TransientIOError as e:
            logger.warning("Draft save failed: %s", e)
            return SaveResult(order_id=order_id, error="Could not save order")
        except TailorHubError as e:
            return SaveResult(order_id=order_id, error=e.message)

    def end_session(self, user_id: Optional[str], session_id: str) -> None:
        """Forget a wizard session's pinned draft. The order itself is kept."""
        key = (user_id, session_id)
        self._pinned.pop(key, None)
        lock = self._create_locks.get(key)
        if lock is not None and not lock.locked():
            del self._create_locks[key]

    async def _create_or_merge(self, row: Dict[str, Any], key: SessionKey) -> SaveResult:
        user_id = key[0]
        async with self._create_locks[key]:
            pinned = self._pinned.get(key)
            if pinned:
                order = await self.get(pinned)
                if order is not None and order.status == OrderStatus.DRAFT:
                    await self._update(pinned, row, user_id)
                    return SaveResult(order_id=pinned)
                # Submitted or gone: this session starts a fresh draft
                del self._pinned[key]

            result = await self._create(row, user_id)
            if result.order_id:
                self._pinned[key] = result.order_id
            return result

    async def _create(self, row: Dict[str, Any], user_id: str) -> SaveResult:
        if not (row.get("customer_name") and row.get("customer_phone")):
            return SaveResult()
        if not row.get("tailor_id"):
            raise PreconditionError("No tailor selected for this order")

        created = await self._records.insert_order({
            **row,
            "customer_user_id": user_id,
            "status": OrderStatus.DRAFT.value,
        })
        logger.info("Created draft order %s for user %s", created["id"], user_id)
        return SaveResult(order_id=created["id"], created=True)

    async def _owned(self, order_id: str, user_id: Optional[str]) -> Order:
        if not user_id:
            raise NotAuthenticatedError()
        order = await self.get(order_id)
        if order is None or order.customer_user_id != user_id:
            raise NotFoundError("Order not found")
        return order

    async def _update(self, order_id: str, row: Dict[str, Any], user_id: str) -> None:
        order = await self._owned(order_id, user_id)
        if order.status not in EDITABLE_STATUSES:
            raise ValidationError("Order can no longer be edited")
        if row:
            await self._records.update_order(order_id, row)

    async def finalize(self, order_id: Optional[str], user_id: Optional[str] = None) -> FinalizeResult:
        """Submit the draft to the tailor. Calling it again is a no-op."""
        if not order_id:
            return FinalizeResult(success=False, error="Order not saved. Please try again.")
        try:
            order = await self._owned(order_id, user_id)
            if order.status == OrderStatus.CANCELLED:
                return FinalizeResult(success=False, status=order.status, error="Order was cancelled")
            if order.status != OrderStatus.DRAFT:
                return FinalizeResult(success=True, status=order.status)

            await self._records.update_order(order_id, {"status": OrderStatus.PENDING.value})
        except TransientIOError as e:
            logger.warning("Finalize of order %s failed: %s", order_id, e)
            return FinalizeResult(success=False, error="Failed to place order. Please try again.")
        except TailorHubError as e:
            return FinalizeResult(success=False, error=e.message)

        for key in [k for k, pinned in self._pinned.items() if pinned == order_id]:
            self.end_session(*key)
        logger.info("Order %s submitted to tailor", order_id)
        return FinalizeResult(success=True, status=OrderStatus.PENDING)

    async def update_status(
        self, order_id: str, status: OrderStatus, user_id: Optional[str]
    ) -> StatusUpdateResult:
        """Tailor moves an order forward; either party may cancel."""
        try:
            order = await self.can_access(order_id, user_id)
            is_customer = order.customer_user_id == user_id
            if is_customer and status != OrderStatus.CANCELLED:
                raise PreconditionError("Only the tailor can change the order status")
            if is_customer and order.status not in EDITABLE_STATUSES:
                raise ValidationError("Order is already being worked on and cannot be cancelled")
            if order.status == OrderStatus.DRAFT and not is_customer:
                raise NotFoundError("Order not found")
            if not can_transition(order.status, status):
                raise ValidationError(
                    f"Cannot move order from {order.status.value} to {status.value}"
                )
            if order.status != status:
                await self._records.update_order(order_id, {"status": status.value})
        except TransientIOError as e:
            logger.warning("Status update of order %s failed: %s", order_id, e)
            return StatusUpdateResult(success=False, error="Could not update order status")
        except TailorHubError as e:
            return StatusUpdateResult(success=False, error=e.message)

        if status in TERMINAL_STATUSES:
            logger.info("Order %s closed as %s", order_id, status.value)
        return StatusUpdateResult(success=True, status=status)
