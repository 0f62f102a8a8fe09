"""
Tests for the client-side status poller and API client.
"""
import asyncio

import httpx
import pytest

from jobtrack import client as client_module
from jobtrack.client import (
    PollOutcome, ResumeApiError, ResumeParsingClient, StatusSnapshot, poll_until_terminal
)


class ScriptedStatus:
    """fetch_status stand-in returning (or raising) scripted answers in order."""

    def __init__(self, *answers):
        self.answers = list(answers)
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        answer = self.answers.pop(0)
        if isinstance(answer, Exception):
            raise answer
        if isinstance(answer, tuple):
            return StatusSnapshot(*answer)
        return StatusSnapshot(answer)


@pytest.fixture
def waits(monkeypatch):
    """Record poll delays instead of sleeping."""
    delays = []

    async def fake_wait(delay, cancel_event):
        delays.append(delay)
        return bool(cancel_event and cancel_event.is_set())

    monkeypatch.setattr(client_module, "_wait_or_cancelled", fake_wait)
    return delays


# =============================================================================
# POLLER
# =============================================================================

class TestPollUntilTerminal:

    def test_stops_at_completed(self, waits):
        fetch = ScriptedStatus("pending", "processing", "completed")
        outcome = asyncio.run(poll_until_terminal(fetch))

        assert outcome == PollOutcome("completed", None, polls=3)
        assert outcome.succeeded
        assert waits == [2.0, 2.0, 2.0]

    def test_surfaces_failure_message(self, waits):
        fetch = ScriptedStatus("processing", ("failed", "No text extracted from resume"))
        outcome = asyncio.run(poll_until_terminal(fetch))

        assert outcome.status == "failed"
        assert outcome.error == "No text extracted from resume"
        assert not outcome.succeeded

    def test_reports_every_update(self, waits):
        seen = []
        fetch = ScriptedStatus("pending", "processing", "completed")
        asyncio.run(poll_until_terminal(fetch, on_update=lambda s: seen.append(s.status)))
        assert seen == ["pending", "processing", "completed"]

    def test_backoff_grows_to_max_interval(self, waits):
        fetch = ScriptedStatus("pending", "processing", "processing", "processing", "completed")
        asyncio.run(poll_until_terminal(fetch, interval=1.0, backoff_factor=2.0, max_interval=5.0))
        assert waits == [1.0, 2.0, 4.0, 5.0, 5.0]

    def test_keeps_polling_through_transient_errors(self, waits):
        request = httpx.Request("GET", "http://test/api/profile/resume-status/j1")
        fetch = ScriptedStatus(
            httpx.ConnectError("connection refused", request=request),
            ResumeApiError(503, "http_error", "Service Unavailable"),
            "completed",
        )
        outcome = asyncio.run(poll_until_terminal(fetch))
        assert outcome.status == "completed"
        assert outcome.polls == 3

    def test_stops_on_client_error(self, waits):
        fetch = ScriptedStatus("processing", ResumeApiError(404, "not_found", "Job not found"))
        outcome = asyncio.run(poll_until_terminal(fetch))

        assert outcome.status is None
        assert outcome.error == "Job not found"
        assert outcome.polls == 2

    def test_cancel_stops_polling(self, waits):
        async def scenario():
            cancel = asyncio.Event()
            fetch = ScriptedStatus("processing", "processing", "completed")

            def on_update(snapshot):
                if fetch.calls == 2:
                    cancel.set()

            return await poll_until_terminal(fetch, cancel_event=cancel, on_update=on_update), fetch

        outcome, fetch = asyncio.run(scenario())
        assert outcome.cancelled
        assert outcome.status == "processing"
        assert fetch.calls == 2

    def test_already_cancelled(self, waits):
        async def scenario():
            cancel = asyncio.Event()
            cancel.set()
            return await poll_until_terminal(ScriptedStatus(), cancel_event=cancel)

        outcome = asyncio.run(scenario())
        assert outcome.cancelled
        assert outcome.polls == 0

    def test_gives_up_after_max_duration(self):
        fetch = ScriptedStatus(*["processing"] * 100)
        outcome = asyncio.run(poll_until_terminal(fetch, interval=0.01, max_duration=0.05))

        assert outcome.timed_out
        assert outcome.status == "processing"
        assert 1 <= fetch.calls < 100

    def test_cancel_event_interrupts_wait(self):
        async def scenario():
            cancel = asyncio.Event()
            asyncio.get_running_loop().call_later(0.05, cancel.set)
            return await poll_until_terminal(ScriptedStatus("completed"), interval=30.0, cancel_event=cancel)

        outcome = asyncio.run(asyncio.wait_for(scenario(), timeout=5))
        assert outcome.cancelled
        assert outcome.polls == 0


# =============================================================================
# API CLIENT
# =============================================================================

def make_client(handler):
    return ResumeParsingClient("http://test", "token-123", transport=httpx.MockTransport(handler))


def test_trigger_parsing_returns_job_id():
    def handler(request):
        assert request.method == "POST"
        assert request.url.path == "/api/profile/parse-resume"
        assert request.headers["Authorization"] == "Bearer token-123"
        return httpx.Response(200, json={"success": True, "job_id": "job-1"})

    async def scenario():
        async with make_client(handler) as api:
            return await api.trigger_parsing()

    assert asyncio.run(scenario()) == "job-1"


def test_error_body_becomes_resume_api_error():
    def handler(request):
        return httpx.Response(409, json={
            "success": False,
            "error": "already_in_progress",
            "detail": "Resume parsing already in progress",
        })

    async def scenario():
        async with make_client(handler) as api:
            await api.retry()

    with pytest.raises(ResumeApiError) as exc_info:
        asyncio.run(scenario())
    assert exc_info.value.status_code == 409
    assert exc_info.value.code == "already_in_progress"
    assert not exc_info.value.retryable


def test_non_json_error():
    async def scenario():
        async with make_client(lambda request: httpx.Response(502, text="Bad Gateway")) as api:
            await api.get_status("job-1")

    with pytest.raises(ResumeApiError) as exc_info:
        asyncio.run(scenario())
    assert exc_info.value.code == "http_error"
    assert exc_info.value.retryable


def test_upload_resume_sends_multipart():
    def handler(request):
        assert request.url.path == "/api/profile/upload-resume"
        assert b'filename="resume.pdf"' in request.content
        return httpx.Response(200, json={"success": True, "url": "/uploads/resumes/1/x.pdf",
                                         "file_name": "resume.pdf", "job_id": "job-1"})

    async def scenario():
        async with make_client(handler) as api:
            return await api.upload_resume("resume.pdf", b"%PDF-1.4", "application/pdf")

    assert asyncio.run(scenario())["job_id"] == "job-1"


def test_watch_polls_status_endpoint(waits):
    answers = iter([
        {"success": True, "job_id": "job-1", "status": "processing", "error": None},
        {"success": True, "job_id": "job-1", "status": "failed", "error": "No text extracted from resume"},
    ])

    def handler(request):
        assert request.url.path == "/api/profile/resume-status/job-1"
        return httpx.Response(200, json=next(answers))

    async def scenario():
        async with make_client(handler) as api:
            return await api.watch("job-1", interval=0.5)

    outcome = asyncio.run(scenario())
    assert outcome.status == "failed"
    assert outcome.error == "No text extracted from resume"
    assert waits == [0.5, 0.5]
