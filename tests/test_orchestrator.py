"""Tests for try-on submission, polling and the fallback path."""

import asyncio

from conftest import CUSTOMER, TAILOR_USER
from tailorhub.tryon.models import TryOnRequest, TryOnStatus
from tailorhub.tryon.orchestrator import TIMEOUT_ERROR, PollHandle, status_message

OUTPUT_URL = "https://storage.test/order-references/tryon/out.webp"
STYLE_URL = "https://storage.test/order-references/cust-1/style.webp"


def _order(drafts, contact_fields):
    async def scenario():
        result = await drafts.save(None, contact_fields, user_id=CUSTOMER)
        return result.order_id
    return asyncio.run(scenario())


def _request(order_id, **overrides):
    fields = {
        "order_id": order_id,
        "customer_photo_url": "https://storage.test/customer-photos/cust-1/me.webp",
        "style_photo_url": STYLE_URL,
        "measurements": {"waist": 32},
    }
    fields.update(overrides)
    return TryOnRequest(**fields)


def _submit(orchestrator, request, user_id=CUSTOMER):
    return asyncio.run(orchestrator.submit(request, user_id))


class TestSubmit:
    def test_creates_queued_job_and_invokes_worker(self, orchestrator, drafts, records, invoker, contact_fields):
        order_id = _order(drafts, contact_fields)
        result = _submit(orchestrator, _request(order_id))

        assert result.error is None
        job = records.jobs[result.job_id]
        assert job["status"] == "queued"
        assert job["order_id"] == order_id
        assert job["input_payload"]["style_photo_url"] == STYLE_URL
        assert job["measurement_data"] == {"waist": 32}
        assert [j.id for j in invoker.jobs] == [result.job_id]

    def test_assigned_tailor_may_submit(self, orchestrator, drafts, contact_fields):
        order_id = _order(drafts, contact_fields)
        assert _submit(orchestrator, _request(order_id), user_id=TAILOR_USER).error is None

    def test_missing_photo(self, orchestrator, records, drafts, contact_fields):
        order_id = _order(drafts, contact_fields)
        result = _submit(orchestrator, _request(order_id, customer_photo_url=""))
        assert result.error == "Missing required data for try-on generation"
        assert records.jobs == {}

    def test_stranger_refused(self, orchestrator, records, drafts, contact_fields):
        order_id = _order(drafts, contact_fields)
        result = _submit(orchestrator, _request(order_id), user_id="someone-else")
        assert result.error == "Order not found"
        assert records.jobs == {}

    def test_anonymous_refused(self, orchestrator, drafts, contact_fields):
        order_id = _order(drafts, contact_fields)
        result = _submit(orchestrator, _request(order_id), user_id=None)
        assert result.error == "You must be logged in to continue"

    def test_unreachable_worker_marks_job_failed(self, orchestrator, drafts, records, invoker, contact_fields):
        order_id = _order(drafts, contact_fields)
        invoker.fail = True
        result = _submit(orchestrator, _request(order_id))

        assert result.error == "Network error while generating try-on preview"
        assert records.jobs[result.job_id]["status"] == "failed"


class TestWait:
    def test_done_after_five_processing_polls(self, orchestrator, drafts, records, sleeps, contact_fields):
        order_id = _order(drafts, contact_fields)
        job_id = _submit(orchestrator, _request(order_id)).job_id
        records.script_job(
            job_id,
            *[{"status": "processing"}] * 5,
            {"status": "done", "output_url": OUTPUT_URL},
        )
        seen = []

        result = asyncio.run(orchestrator.wait_for_completion(
            job_id, on_progress=lambda attempt, status: seen.append((attempt, status))
        ))

        assert result.success
        assert result.output_url == OUTPUT_URL
        assert result.attempts == 6
        assert records.job_reads == 6
        assert sleeps == [2.0] * 5
        assert seen[-1] == (6, TryOnStatus.DONE)

    def test_gives_up_after_max_attempts(self, orchestrator, drafts, records, sleeps, contact_fields):
        order_id = _order(drafts, contact_fields)
        job_id = _submit(orchestrator, _request(order_id)).job_id
        records.script_job(job_id, *[{"status": "processing"}] * 30)

        result = asyncio.run(orchestrator.wait_for_completion(job_id))

        assert not result.success
        assert result.error == TIMEOUT_ERROR
        assert records.job_reads == 30
        # No sleep after the final poll
        assert len(sleeps) == 29
        # The stored job is left for the worker to finish
        assert records.jobs[job_id]["status"] == "processing"

    def test_explicit_attempt_limit(self, orchestrator, drafts, records, sleeps, contact_fields):
        order_id = _order(drafts, contact_fields)
        job_id = _submit(orchestrator, _request(order_id)).job_id
        records.script_job(job_id, *[{"status": "processing"}] * 5)

        result = asyncio.run(orchestrator.wait_for_completion(job_id, max_attempts=2))

        assert result.error == TIMEOUT_ERROR
        assert result.attempts == 2
        assert records.job_reads == 2
        assert len(sleeps) == 1

    def test_zero_attempts_never_polls(self, orchestrator, drafts, records, contact_fields):
        order_id = _order(drafts, contact_fields)
        job_id = _submit(orchestrator, _request(order_id)).job_id

        result = asyncio.run(orchestrator.wait_for_completion(job_id, max_attempts=0))

        assert not result.success
        assert result.attempts == 0
        assert records.job_reads == 0

    def test_failed_job_reports_worker_error(self, orchestrator, drafts, records, contact_fields):
        order_id = _order(drafts, contact_fields)
        job_id = _submit(orchestrator, _request(order_id)).job_id
        records.script_job(job_id, {"status": "failed", "error_msg": "AI generation failed"})

        result = asyncio.run(orchestrator.wait_for_completion(job_id))
        assert not result.success
        assert result.error == "AI generation failed"
        assert result.attempts == 1

    def test_handle_stops_the_loop(self, orchestrator, drafts, records, contact_fields):
        order_id = _order(drafts, contact_fields)
        job_id = _submit(orchestrator, _request(order_id)).job_id
        records.script_job(job_id, *[{"status": "processing"}] * 30)
        handle = PollHandle()

        def progress(attempt, status):
            if attempt == 2:
                handle.cancel()

        result = asyncio.run(orchestrator.wait_for_completion(job_id, on_progress=progress, handle=handle))
        assert result.error == "Cancelled"
        assert result.attempts == 2
        assert records.job_reads == 2


class TestPoll:
    def test_missing_job(self, orchestrator):
        result = asyncio.run(orchestrator.poll("job-404"))
        assert result.status == TryOnStatus.FAILED
        assert result.error_msg == "Try-on job not found"

    def test_read_error_counts_as_failed(self, orchestrator, records):
        records.fail_reads = True
        result = asyncio.run(orchestrator.poll("job-1"))
        assert result.status == TryOnStatus.FAILED
        assert result.error_msg == "Failed to check status"


class TestGenerateWithFallback:
    def test_success(self, orchestrator, drafts, records, invoker, contact_fields):
        order_id = _order(drafts, contact_fields)

        async def complete(job):
            records.jobs[job.id].update(status="done", output_url=OUTPUT_URL)

        invoker.invoke = complete
        messages = []
        result = asyncio.run(orchestrator.generate_with_fallback(
            _request(order_id), fallback_url=STYLE_URL, user_id=CUSTOMER, on_progress=messages.append
        ))

        assert result.url == OUTPUT_URL
        assert not result.is_fallback
        assert result.error is None
        assert messages[0] == "Initializing AI generation..."
        assert messages[-1] == "Complete!"

    def test_submission_failure_falls_back(self, orchestrator, drafts, invoker, contact_fields):
        order_id = _order(drafts, contact_fields)
        invoker.fail = True
        result = asyncio.run(orchestrator.generate_with_fallback(
            _request(order_id), fallback_url=STYLE_URL, user_id=CUSTOMER
        ))
        assert result.url == STYLE_URL
        assert result.is_fallback
        assert result.error == "Network error while generating try-on preview"
        assert result.job_id is not None

    def test_timeout_falls_back(self, orchestrator, drafts, records, invoker, contact_fields):
        order_id = _order(drafts, contact_fields)

        async def stall(job):
            records.script_job(job.id, *[{"status": "processing"}] * 30)

        invoker.invoke = stall
        result = asyncio.run(orchestrator.generate_with_fallback(
            _request(order_id), fallback_url=STYLE_URL, user_id=CUSTOMER
        ))
        assert result.is_fallback
        assert result.error == TIMEOUT_ERROR

    def test_never_raises(self, orchestrator, drafts, records, contact_fields, monkeypatch):
        order_id = _order(drafts, contact_fields)

        async def explode(job_id):
            raise RuntimeError("connection pool exhausted")

        monkeypatch.setattr(records, "get_job", explode)
        result = asyncio.run(orchestrator.generate_with_fallback(
            _request(order_id), fallback_url=STYLE_URL, user_id=CUSTOMER
        ))
        assert result.url == STYLE_URL
        assert result.is_fallback
        assert result.error == "Unexpected error during generation"


def test_status_messages():
    assert status_message(TryOnStatus.QUEUED, 1, 30) == "In queue, please wait..."
    assert status_message(TryOnStatus.PROCESSING, 2, 30) == "Applying style to your photo..."
    assert status_message(TryOnStatus.DONE, 3, 30) == "Processing (3/30)..."
