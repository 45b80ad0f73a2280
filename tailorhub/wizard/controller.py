"""Order creation wizard: step sequencing, autosave and the try-on preview.

Steps run contact -> measurements -> style -> preview -> confirm. Only the
contact step blocks `next()`; photos, measurements and the AI preview can be
skipped and the order still goes through.
"""

import logging
import uuid
from enum import IntEnum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic import ValidationError as PydanticValidationError

from tailorhub.config import settings
from tailorhub.errors import ValidationError
from tailorhub.imaging.preparation import ImageUpload
from tailorhub.orders.draft_store import FinalizeResult, OrderDraftStore
from tailorhub.orders.measurements import parse_partial_measurements, validate_measurements
from tailorhub.storage.asset_store import AssetStoreGateway, UploadResult
from tailorhub.tryon.models import FallbackResult, MessageCallback, TryOnRequest
from tailorhub.tryon.orchestrator import PollHandle, TryOnOrchestrator
from tailorhub.wizard.debounce import Debouncer

logger = logging.getLogger(__name__)


class WizardStep(IntEnum):
    CONTACT = 1
    MEASUREMENTS = 2
    STYLE = 3
    PREVIEW = 4
    CONFIRM = 5


# Fields the UI may edit directly through update()
EDITABLE_FIELDS = frozenset({
    "customer_name",
    "customer_phone",
    "customer_email",
    "fabric_type",
    "design_notes",
})

_CONTACT_MESSAGES = {
    "customer_name": "Name is required",
    "customer_phone": "Valid phone required",
    "customer_email": "Enter a valid email address",
}


class ContactInfo(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    customer_name: str = Field(min_length=1, max_length=100)
    customer_phone: str = Field(min_length=10, max_length=20)
    customer_email: Optional[EmailStr] = None


class WizardState(BaseModel):
    step: WizardStep = WizardStep.CONTACT
    order_id: Optional[str] = None

    customer_name: str = ""
    customer_phone: str = ""
    customer_email: str = ""

    measurements: Dict[str, Any] = Field(default_factory=dict)
    measurements_valid: bool = False

    customer_photo_url: Optional[str] = None
    photo_urls: List[str] = Field(default_factory=list)
    style_id: Optional[str] = None
    style_photo_url: Optional[str] = None
    fabric_type: str = ""
    design_notes: str = ""

    tryon_result_url: Optional[str] = None
    tryon_is_fallback: Optional[bool] = None
    completed: bool = False


class StepResult(BaseModel):
    ok: bool
    step: WizardStep
    error: Optional[str] = None


def check_contact(state: WizardState) -> Optional[str]:
    """First contact problem as a user-facing message, or None."""
    try:
        ContactInfo(
            customer_name=state.customer_name,
            customer_phone=state.customer_phone,
            customer_email=state.customer_email or None,
        )
    except PydanticValidationError as e:
        field = str(e.errors()[0]["loc"][0])
        return _CONTACT_MESSAGES.get(field, "Invalid contact details")
    return None


class WizardController:
    """One customer's in-progress order. Discard it after confirm() or cancel()."""

    def __init__(
        self,
        drafts: OrderDraftStore,
        assets: AssetStoreGateway,
        orchestrator: TryOnOrchestrator,
        tailor_id: str,
        user_id: Optional[str],
        debounce_seconds: Optional[float] = None,
    ):
        self._drafts = drafts
        self._assets = assets
        self._orchestrator = orchestrator
        self.tailor_id = tailor_id
        self.user_id = user_id
        self.session_id = str(uuid.uuid4())
        self.state = WizardState()
        self._poll_handle: Optional[PollHandle] = None
        if debounce_seconds is None:
            debounce_seconds = settings.autosave_debounce_seconds
        self.autosaver = Debouncer(self._autosave, interval=debounce_seconds)

    # -- navigation -------------------------------------------------------

    @property
    def step(self) -> WizardStep:
        return self.state.step

    @property
    def progress(self) -> float:
        return self.state.step / len(WizardStep) * 100

    def next(self) -> StepResult:
        if self.state.step == WizardStep.CONTACT:
            error = check_contact(self.state)
            if error:
                return StepResult(ok=False, step=self.state.step, error=error)
        if self.state.step < WizardStep.CONFIRM:
            self.state.step = WizardStep(self.state.step + 1)
        return StepResult(ok=True, step=self.state.step)

    def back(self) -> StepResult:
        if self.state.step > WizardStep.CONTACT:
            self.state.step = WizardStep(self.state.step - 1)
        return StepResult(ok=True, step=self.state.step)

    # -- field edits ------------------------------------------------------

    def update(self, **fields: Any) -> None:
        unknown = set(fields) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown wizard fields: {', '.join(sorted(unknown))}")
        for name, value in fields.items():
            setattr(self.state, name, value or "")
        self._changed()

    def set_measurements(self, data: Dict[str, Any]) -> StepResult:
        """Full validation; blocks with the first range message on failure."""
        check = validate_measurements(data)
        if not check.valid:
            return StepResult(ok=False, step=self.state.step, error=check.first_error)
        self.state.measurements = check.measurements.to_document()
        self.state.measurements_valid = True
        self._changed()
        return StepResult(ok=True, step=self.state.step)

    def save_measurement_draft(self, data: Dict[str, Any]) -> StepResult:
        """Keep a half-filled form; only unknown keys or non-numbers are refused."""
        check = parse_partial_measurements(data)
        if not check.valid:
            return StepResult(ok=False, step=self.state.step, error=check.first_error)
        self.state.measurements = check.measurements.to_document()
        self.state.measurements_valid = False
        self._changed()
        return StepResult(ok=True, step=self.state.step)

    def select_style(self, style_id: str, style_url: str) -> None:
        self.state.style_id = style_id
        self.state.style_photo_url = style_url
        self._changed()

    async def upload_customer_photo(self, image: ImageUpload) -> UploadResult:
        result = await self._assets.upload_customer_photo(
            image, self.user_id, max_bytes=settings.wizard_max_upload_bytes
        )
        if result.ok:
            self.state.customer_photo_url = result.url
            self._changed()
        return result

    async def upload_style_photo(self, image: ImageUpload) -> UploadResult:
        result = await self._assets.upload_style_photo(
            image, self.user_id, max_bytes=settings.wizard_max_upload_bytes
        )
        if result.ok:
            self.state.style_photo_url = result.url
            self.state.style_id = None
            self._changed()
        return result

    async def add_reference_photo(self, image: ImageUpload) -> UploadResult:
        result = await self._assets.upload_reference_photo(
            image, self.user_id, max_bytes=settings.wizard_max_upload_bytes
        )
        if result.ok:
            self.state.photo_urls = [*self.state.photo_urls, result.url]
            self._changed()
        return result

    def remove_reference_photo(self, index: int) -> None:
        urls = list(self.state.photo_urls)
        if 0 <= index < len(urls):
            urls.pop(index)
            self.state.photo_urls = urls
            self._changed()

    # -- autosave ---------------------------------------------------------

    def _changed(self) -> None:
        if self.state.completed:
            return
        self.autosaver.schedule()

    def _snapshot(self) -> Dict[str, Any]:
        s = self.state
        return {
            "tailor_id": self.tailor_id,
            "customer_name": s.customer_name,
            "customer_phone": s.customer_phone,
            "customer_email": s.customer_email or None,
            "measurements": s.measurements or None,
            "photo_urls": s.photo_urls,
            "customer_photo_url": s.customer_photo_url,
            "style_photo_url": s.style_photo_url,
            "style_id": s.style_id,
            "fabric_type": s.fabric_type or None,
            "design_notes": s.design_notes or None,
            "design_image_url": s.tryon_result_url if s.tryon_is_fallback is False else None,
        }

    async def _autosave(self) -> bool:
        result = await self._drafts.save(
            self.state.order_id,
            self._snapshot(),
            user_id=self.user_id,
            session_id=self.session_id,
        )
        if result.order_id:
            self.state.order_id = result.order_id
        if result.error:
            logger.warning("Autosave failed (will retry on next edit): %s", result.error)
            return False
        return True

    # -- try-on preview ---------------------------------------------------

    def can_generate_preview(self) -> bool:
        return bool(self.state.customer_photo_url and self.state.style_photo_url)

    async def generate_preview(self, on_progress: Optional[MessageCallback] = None) -> FallbackResult:
        fallback = self.state.style_photo_url or ""
        if not self.can_generate_preview():
            return FallbackResult(
                url=fallback,
                is_fallback=True,
                error="Missing required data for try-on generation",
            )

        await self.autosaver.flush()
        if not self.state.order_id:
            return FallbackResult(url=fallback, is_fallback=True, error="Order not saved yet")

        self._poll_handle = PollHandle()
        result = await self._orchestrator.generate_with_fallback(
            TryOnRequest(
                order_id=self.state.order_id,
                customer_photo_url=self.state.customer_photo_url,
                style_photo_url=self.state.style_photo_url,
                measurements=self.state.measurements or None,
            ),
            fallback_url=fallback,
            user_id=self.user_id,
            on_progress=on_progress,
            handle=self._poll_handle,
        )
        self._poll_handle = None

        if self.state.completed or self.autosaver.closed:
            return result
        self.state.tryon_result_url = result.url
        self.state.tryon_is_fallback = result.is_fallback
        self._changed()
        return result

    def skip_preview(self) -> None:
        self.state.tryon_result_url = None
        self.state.tryon_is_fallback = None
        self._changed()

    # -- finish -----------------------------------------------------------

    async def confirm(self) -> FinalizeResult:
        await self.autosaver.flush()
        if not self.state.order_id:
            return FinalizeResult(success=False, error="Order not saved. Please try again.")

        result = await self._drafts.finalize(self.state.order_id, user_id=self.user_id)
        if result.success:
            self.state.completed = True
            self.autosaver.close()
        return result

    def cancel(self) -> None:
        """Abandon the session. In-flight calls finish; their results are dropped."""
        if self._poll_handle is not None:
            self._poll_handle.cancel()
        self.autosaver.close()
        self._drafts.end_session(self.user_id, self.session_id)
