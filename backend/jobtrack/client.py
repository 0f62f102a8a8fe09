"""
Resume parsing API client and status poller.

Used by front-ends and scripts to upload a resume, start parsing and watch the
job until it finishes:

    async with ResumeParsingClient("https://api.example.com", token) as client:
        job_id = await client.trigger_parsing()
        outcome = await client.watch(job_id, cancel_event=stop)
        if outcome.status == "failed":
            job_id = await client.retry()
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

import httpx

from .config import get_settings

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = ("pending", "processing")
TERMINAL_STATUSES = ("completed", "failed")


class ResumeApiError(Exception):
    def __init__(self, status_code: int, code: str, detail: str):
        super().__init__(f"{code}: {detail}")
        self.status_code = status_code
        self.code = code
        self.detail = detail

    @property
    def retryable(self) -> bool:
        return self.status_code >= 500


@dataclass
class StatusSnapshot:
    status: str
    error: Optional[str] = None


@dataclass
class PollOutcome:
    status: Optional[str]
    error: Optional[str] = None
    polls: int = 0
    timed_out: bool = False
    cancelled: bool = False

    @property
    def succeeded(self) -> bool:
        return self.status == "completed"


async def _wait_or_cancelled(delay: float, cancel_event: Optional[asyncio.Event]) -> bool:
    """Sleep for delay seconds; return True early if cancel_event is set."""
    if cancel_event is None:
        await asyncio.sleep(delay)
        return False
    try:
        await asyncio.wait_for(cancel_event.wait(), timeout=delay)
        return True
    except asyncio.TimeoutError:
        return False


async def poll_until_terminal(
    fetch_status: Callable[[], Awaitable[StatusSnapshot]],
    *,
    interval: float = 2.0,
    backoff_factor: float = 1.0,
    max_interval: float = 30.0,
    max_duration: Optional[float] = None,
    cancel_event: Optional[asyncio.Event] = None,
    on_update: Optional[Callable[[StatusSnapshot], None]] = None,
    initial_status: str = "pending",
) -> PollOutcome:
    """
    Call fetch_status every interval seconds while the job is pending/processing.

    Stops on a terminal status, when cancel_event is set, or once max_duration
    has elapsed. With backoff_factor > 1 the interval grows after every poll up
    to max_interval. Failed fetches keep polling unless the API answered with a
    non-retryable (4xx) error.
    """
    loop = asyncio.get_running_loop()
    started = loop.time()
    delay = interval
    status, error, polls = initial_status, None, 0

    while status in ACTIVE_STATUSES:
        if cancel_event is not None and cancel_event.is_set():
            return PollOutcome(status, error, polls, cancelled=True)

        wait = delay
        if max_duration is not None:
            remaining = max_duration - (loop.time() - started)
            if remaining <= 0:
                return PollOutcome(status, error, polls, timed_out=True)
            wait = min(delay, remaining)

        if await _wait_or_cancelled(wait, cancel_event):
            return PollOutcome(status, error, polls, cancelled=True)

        polls += 1
        try:
            snapshot = await fetch_status()
        except ResumeApiError as e:
            if not e.retryable:
                return PollOutcome(None, e.detail, polls)
            logger.warning("Status poll failed (%s), will retry", e)
        except httpx.HTTPError as e:
            logger.warning("Status poll failed (%s), will retry", e)
        else:
            status, error = snapshot.status, snapshot.error
            if on_update:
                on_update(snapshot)

        delay = min(delay * backoff_factor, max_interval)

    return PollOutcome(status, error, polls)


class ResumeParsingClient:
    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={"Authorization": f"Bearer {token}"},
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, url: str, **kwargs) -> dict:
        response = await self._client.request(method, url, **kwargs)
        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.is_error:
            raise ResumeApiError(
                response.status_code,
                data.get("error", "http_error"),
                data.get("detail") or response.reason_phrase,
            )
        return data

    async def upload_resume(self, filename: str, content: bytes, content_type: str) -> dict:
        return await self._request(
            "POST", "/api/profile/upload-resume",
            files={"file": (filename, content, content_type)},
        )

    async def trigger_parsing(self) -> str:
        data = await self._request("POST", "/api/profile/parse-resume")
        return data["job_id"]

    async def retry(self) -> str:
        """Retrying a failed job is starting a fresh one."""
        return await self.trigger_parsing()

    async def get_status(self, job_id: str) -> StatusSnapshot:
        data = await self._request("GET", f"/api/profile/resume-status/{job_id}")
        return StatusSnapshot(status=data["status"], error=data.get("error"))

    async def watch(
        self,
        job_id: str,
        *,
        cancel_event: Optional[asyncio.Event] = None,
        on_update: Optional[Callable[[StatusSnapshot], None]] = None,
        interval: Optional[float] = None,
        backoff_factor: Optional[float] = None,
        max_interval: Optional[float] = None,
        max_duration: Optional[float] = None,
    ) -> PollOutcome:
        """Poll job_id until it is terminal, using the configured poll settings by default."""
        settings = get_settings()
        outcome = await poll_until_terminal(
            lambda: self.get_status(job_id),
            interval=interval if interval is not None else settings.poll_interval_seconds,
            backoff_factor=backoff_factor if backoff_factor is not None else settings.poll_backoff_factor,
            max_interval=max_interval if max_interval is not None else settings.poll_max_interval_seconds,
            max_duration=max_duration if max_duration is not None else settings.poll_max_duration_seconds,
            cancel_event=cancel_event,
            on_update=on_update,
        )
        logger.info("Resume parsing job %s finished polling: %s", job_id, outcome.status)
        return outcome
