"""Pytest configuration and shared fixtures for the order service tests."""

import asyncio
import io
import itertools

import pytest
from PIL import Image

from tailorhub.db.records import OPEN_JOB_STATUSES
from tailorhub.errors import TransientIOError, ValidationError
from tailorhub.imaging.preparation import ImageUpload
from tailorhub.orders.draft_store import OrderDraftStore
from tailorhub.storage.asset_store import AssetStoreGateway
from tailorhub.tryon.orchestrator import TryOnOrchestrator

CUSTOMER = "cust-1"
TAILOR_ID = "tailor-1"
TAILOR_USER = "tailor-user"


class FakeRecordStore:
    """In-memory RecordStore. Finished jobs reject writes like the real table filter."""

    def __init__(self):
        self.orders = {}
        self.jobs = {}
        self.tailors = {TAILOR_ID: TAILOR_USER}
        self.order_inserts = 0
        self.job_reads = 0
        self.fail_reads = False
        self._ids = itertools.count(1)
        self._scripts = {}

    def _check_reads(self):
        if self.fail_reads:
            raise TransientIOError("Could not load")

    def script_job(self, job_id, *states):
        """Each get_job() call applies the next state before answering."""
        self._scripts[job_id] = list(states)

    async def insert_order(self, row):
        # Yield so concurrent creators actually interleave
        await asyncio.sleep(0)
        self.order_inserts += 1
        order_id = f"order-{next(self._ids)}"
        self.orders[order_id] = {**row, "id": order_id}
        return dict(self.orders[order_id])

    async def get_order(self, order_id):
        self._check_reads()
        row = self.orders.get(order_id)
        return dict(row) if row else None

    async def update_order(self, order_id, fields):
        if order_id not in self.orders:
            raise ValidationError(f"Order {order_id} not found")
        self.orders[order_id].update(fields)
        return dict(self.orders[order_id])

    async def get_tailor_user_id(self, tailor_id):
        return self.tailors.get(tailor_id)

    async def insert_job(self, row):
        job_id = f"job-{next(self._ids)}"
        self.jobs[job_id] = {**row, "id": job_id}
        return dict(self.jobs[job_id])

    async def get_job(self, job_id):
        self._check_reads()
        self.job_reads += 1
        script = self._scripts.get(job_id)
        if script:
            self.jobs[job_id].update(script.pop(0))
        row = self.jobs.get(job_id)
        return dict(row) if row else None

    async def update_job(self, job_id, fields):
        job = self.jobs.get(job_id)
        if job is None or job["status"] not in OPEN_JOB_STATUSES:
            raise ValidationError(f"Try-on job {job_id} is missing or already finished")
        job.update(fields)
        return dict(job)


class FakeObjectStore:
    def __init__(self):
        self.objects = {}
        self.fail = False

    async def put(self, bucket, path, data, content_type):
        if self.fail:
            raise TransientIOError("Storage upload failed: offline")
        self.objects[(bucket, path)] = (data, content_type)

    async def public_url(self, bucket, path):
        return f"https://storage.test/{bucket}/{path}"

    async def delete(self, bucket, path):
        if self.fail:
            raise TransientIOError("Storage delete failed: offline")
        self.objects.pop((bucket, path), None)


class FakeInvoker:
    def __init__(self):
        self.jobs = []
        self.fail = False

    async def invoke(self, job):
        if self.fail:
            raise TransientIOError("worker unreachable")
        self.jobs.append(job)


def make_image_bytes(width, height, fmt="JPEG", mode="RGB", exif=None):
    """Encode a solid-colour test image."""
    color = (180, 90, 40, 128) if mode == "RGBA" else (180, 90, 40)
    img = Image.new(mode, (width, height), color=color)
    buffer = io.BytesIO()
    if exif is not None:
        img.save(buffer, format=fmt, exif=exif)
    else:
        img.save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def records():
    return FakeRecordStore()


@pytest.fixture
def object_store():
    return FakeObjectStore()


@pytest.fixture
def invoker():
    return FakeInvoker()


@pytest.fixture
def drafts(records):
    return OrderDraftStore(records)


@pytest.fixture
def assets(object_store):
    return AssetStoreGateway(object_store)


@pytest.fixture
def sleeps():
    """Intervals the orchestrator asked to sleep for."""
    return []


@pytest.fixture
def orchestrator(records, drafts, invoker, sleeps):
    async def fake_sleep(seconds):
        sleeps.append(seconds)

    return TryOnOrchestrator(
        records, drafts, invoker, poll_interval=2.0, max_attempts=30, sleep=fake_sleep
    )


@pytest.fixture
def contact_fields():
    return {
        "tailor_id": TAILOR_ID,
        "customer_name": "Ada Okafor",
        "customer_phone": "5551234567",
    }


@pytest.fixture
def valid_measurements():
    return {
        "shoulder_width": 17,
        "chest_bust": 38,
        "under_bust": 32,
        "waist": 32,
        "neck_circumference": 15,
        "arm_length": 25,
        "arm_width": 12,
        "hip": 40,
        "thigh": 22,
        "knee": 15,
        "inside_leg": 31,
        "full_length_top": 28,
        "full_length_bottom": 40,
        "shoulder_to_waist": 17,
        "waist_to_hip": 8,
    }


@pytest.fixture
def portrait_jpeg():
    """Meets the minimum resolution."""
    return ImageUpload(data=make_image_bytes(600, 800), content_type="image/jpeg", filename="me.jpg")


@pytest.fixture
def tiny_jpeg():
    return ImageUpload(data=make_image_bytes(300, 400), content_type="image/jpeg", filename="tiny.jpg")
