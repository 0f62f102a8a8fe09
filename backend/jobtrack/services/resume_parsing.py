"""
Resume Parsing Service - trigger, background processing and status of parsing jobs.

Flow:
1. trigger() checks the profile has a resume and no job is in flight,
   creates a PENDING job and fires process_job() without awaiting it
2. process_job() walks the job through PROCESSING to COMPLETED or FAILED:
   download → extract text → AI parse → write profile
3. get_status() lets the owner poll the job until it is terminal

The processor runs detached from any request, so it never raises: every
failure ends up on job.error_message and profile.resume_parsing_error.
"""
import asyncio
import logging
import re
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

from ..models import ResumeParsingJob, ResumeParsingStatus
from ..repositories import JobRepository, ProfileRepository
from .document_extractor import ExtractedText, DocumentType, extract_document_text, infer_document_type, redact_pii
from .errors import (
    ResumePipelineError, NoResumeFound, AlreadyInProgress, JobNotFound, InvalidUpload,
    DownloadFailure, ExtractionFailure, ParsingFailure, ProfileUpdateFailure, UnexpectedError
)
from .invalidation import ProfileCacheInvalidator
from .resume_parser import ParsedResume, ResumeParseError, parse_resume_text
from .storage import ObjectStorage, resolve_storage_path

logger = logging.getLogger(__name__)

MAX_ERROR_LENGTH = 500
ACCEPTED_EXTENSIONS = (".pdf", ".docx")
INTERRUPTED_MESSAGE = "Parsing was interrupted by a server restart. Please retry."
FINISHED_ELSEWHERE_MESSAGE = "Job was already finished elsewhere"

TextExtractor = Callable[[bytes, DocumentType], Awaitable[ExtractedText]]
ResumeParser = Callable[[str, int], Awaitable[ParsedResume]]


@dataclass
class ProcessingResult:
    success: bool
    error: Optional[str] = None


@dataclass
class JobStatusReport:
    job_id: str
    status: ResumeParsingStatus
    error: Optional[str] = None

    @property
    def can_retry(self) -> bool:
        return self.status == ResumeParsingStatus.FAILED


def _report(job: ResumeParsingJob) -> JobStatusReport:
    return JobStatusReport(
        job_id=job.id,
        status=ResumeParsingStatus(job.status),
        error=job.error_message or None,
    )


def sanitize_filename(filename: str) -> str:
    return re.sub(r"[^a-zA-Z0-9.-]", "_", filename)


class ResumeParsingService:
    def __init__(
        self,
        jobs: JobRepository,
        profiles: ProfileRepository,
        storage: ObjectStorage,
        extract_text: TextExtractor = extract_document_text,
        parse_resume: ResumeParser = parse_resume_text,
        invalidator: Optional[ProfileCacheInvalidator] = None,
        max_resume_size: int = 5 * 1024 * 1024,
    ):
        self.jobs = jobs
        self.profiles = profiles
        self.storage = storage
        self.extract_text = extract_text
        self.parse_resume = parse_resume
        self.invalidator = invalidator or ProfileCacheInvalidator()
        self.max_resume_size = max_resume_size
        # Strong references so detached jobs aren't garbage collected mid-run
        self._tasks = set()
        # Jobs created before this are not ours; see recover_interrupted_jobs
        self.started_at = datetime.now(timezone.utc)

    # ========================================================================
    # Trigger
    # ========================================================================

    async def trigger(self, user_id: int) -> str:
        """Create a parsing job for the user's current resume and start it."""
        try:
            profile = await self.profiles.get(user_id)
            if not profile or not profile.resume_url:
                raise NoResumeFound()

            # Fast path; the unique index on active jobs is what actually guarantees it
            if await self.jobs.find_active_for_user(user_id):
                raise AlreadyInProgress()

            job = await self.jobs.create_pending(user_id, profile.resume_url)
        except ResumePipelineError:
            raise
        except Exception as e:
            logger.exception("Unexpected error triggering resume parsing for user %s", user_id)
            raise UnexpectedError() from e

        logger.info("Created resume parsing job %s for user %s", job.id, user_id)
        self._launch(job.id)
        return job.id

    def _launch(self, job_id: str) -> None:
        task = asyncio.create_task(self.process_job(job_id), name=f"resume-parse-{job_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every detached job started by this service."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ========================================================================
    # Background Processing
    # ========================================================================

    async def process_job(self, job_id: str) -> ProcessingResult:
        try:
            job = await self.jobs.get(job_id)
        except Exception:
            logger.exception("Could not load resume parsing job %s", job_id)
            return ProcessingResult(False, UnexpectedError.default_message)

        if not job:
            return ProcessingResult(False, JobNotFound.default_message)
        if job.status != ResumeParsingStatus.PENDING:
            # Already picked up (or finished); never touch another run's records
            return ProcessingResult(False, f"Job is already {ResumeParsingStatus(job.status).value}")

        try:
            if not await self.jobs.mark_processing(job.id):
                return ProcessingResult(False, "Job was already picked up")
            logger.info("Resume parsing job %s started for user %s", job.id, job.user_id)
            completed = await self._run(job)
        except Exception as e:
            message = self._failure_message(e)
            if not isinstance(e, ResumePipelineError):
                logger.exception("Unexpected error in resume parsing job %s", job.id)
            await self._record_failure(job, message)
            return ProcessingResult(False, message)

        if not completed:
            # Failed by another process meanwhile; its outcome stands on job and profile
            logger.warning("Resume parsing job %s was finished elsewhere, result discarded", job.id)
            return ProcessingResult(False, FINISHED_ELSEWHERE_MESSAGE)

        logger.info("✅ Resume parsing completed for user %s (job %s)", job.user_id, job.id)
        self.invalidator.notify(job.user_id)
        return ProcessingResult(True)

    async def _run(self, job: ResumeParsingJob) -> bool:
        """Run the pipeline steps. Returns False if the job was finished elsewhere first."""
        storage_path = resolve_storage_path(job.resume_url, self.storage.bucket)

        try:
            file_bytes = await self.storage.download(storage_path)
        except Exception as e:
            raise DownloadFailure(f"Failed to download resume: {e}")

        document_type = infer_document_type(storage_path)
        try:
            extracted = await self.extract_text(file_bytes, document_type)
        except Exception as e:
            raise ExtractionFailure(f"Failed to extract text from resume: {e}")

        if not extracted.text or not extracted.text.strip():
            raise ExtractionFailure()
        logger.debug("Job %s text preview: %s", job.id, redact_pii(extracted.text[:200]))

        try:
            parsed = await self.parse_resume(extracted.text, job.user_id)
        except ResumeParseError as e:
            raise ParsingFailure(str(e))
        except Exception as e:
            raise ParsingFailure(f"Resume parsing failed: {e}")

        try:
            return await self.jobs.complete(
                job.id, job.user_id, parsed.model_dump(mode="json"), parsed.skills
            )
        except ProfileUpdateFailure:
            raise
        except Exception as e:
            raise ProfileUpdateFailure(f"Failed to update profile: {e}")

    @staticmethod
    def _failure_message(error: Exception) -> str:
        if isinstance(error, ResumePipelineError):
            message = error.message
        else:
            message = str(error) or "Unknown parsing error"
        return message[:MAX_ERROR_LENGTH]

    async def _record_failure(self, job: ResumeParsingJob, message: str) -> None:
        logger.warning("Resume parsing failed for user %s (job %s): %s", job.user_id, job.id, message)
        try:
            if not await self.jobs.mark_failed(job.id, message):
                logger.warning("Resume parsing job %s was already finished, keeping its outcome", job.id)
                return
        except Exception:
            logger.exception("Could not mark resume parsing job %s as failed", job.id)
        try:
            await self.profiles.save_parsing_error(job.user_id, message)
        except Exception:
            logger.exception("Could not record parsing error on profile of user %s", job.user_id)

    async def recover_interrupted_jobs(self, created_before: Optional[datetime] = None) -> int:
        """
        Fail jobs left PENDING/PROCESSING by a previous process.

        Only jobs created before this service started are considered. Another
        worker may still be running one of those; the conditional status
        updates make whichever side finishes first win, and the loser writes
        nothing.
        """
        interrupted = await self.jobs.fail_interrupted(
            INTERRUPTED_MESSAGE, created_before or self.started_at
        )
        for job_id, user_id in interrupted:
            logger.warning("Resume parsing job %s for user %s was interrupted", job_id, user_id)
            await self.profiles.save_parsing_error(user_id, INTERRUPTED_MESSAGE)
        return len(interrupted)

    # ========================================================================
    # Status
    # ========================================================================

    async def get_status(self, job_id: str, caller_id: int) -> JobStatusReport:
        """
        Missing jobs and jobs owned by someone else both raise JobNotFound,
        so callers cannot probe for other users' job ids.
        """
        try:
            job = await self.jobs.get_for_user(job_id, caller_id)
        except Exception as e:
            logger.exception("Unexpected error reading resume parsing job %s", job_id)
            raise UnexpectedError() from e

        if not job:
            raise JobNotFound()
        return _report(job)

    async def latest_status(self, caller_id: int) -> Optional[JobStatusReport]:
        try:
            job = await self.jobs.latest_for_user(caller_id)
        except Exception as e:
            logger.exception("Unexpected error reading latest resume job for user %s", caller_id)
            raise UnexpectedError() from e
        return _report(job) if job else None

    # ========================================================================
    # Resume file
    # ========================================================================

    async def upload_resume(self, user_id: int, filename: str, content: bytes, content_type: str = None) -> str:
        """Store the resume file and point the profile at it. Returns the file URL."""
        if not filename or not filename.lower().endswith(ACCEPTED_EXTENSIONS):
            raise InvalidUpload("File must be PDF or DOCX format")
        if not content:
            raise InvalidUpload("Uploaded file is empty")
        if len(content) > self.max_resume_size:
            raise InvalidUpload(f"File size must be less than {self.max_resume_size // (1024 * 1024)}MB")

        document_type = infer_document_type(filename)
        timestamp = int(time.time() * 1000)
        file_path = f"{user_id}/{timestamp}_{sanitize_filename(filename)}"

        resume_url = await self.storage.upload(file_path, content, content_type or document_type.value)
        try:
            await self.profiles.set_resume(user_id, resume_url, filename)
        except Exception as e:
            logger.error("Profile update failed after upload for user %s: %s", user_id, e)
            try:
                await self.storage.delete(file_path)
            except Exception as cleanup_error:
                logger.error("Could not remove orphaned resume %s: %s", file_path, cleanup_error)
            raise ProfileUpdateFailure() from e

        logger.info("Resume uploaded for user %s: %s", user_id, resume_url)
        return resume_url

    async def delete_resume(self, user_id: int) -> None:
        profile = await self.profiles.get(user_id)
        if not profile or not profile.resume_url:
            raise NoResumeFound("No resume found")

        file_path = resolve_storage_path(profile.resume_url, self.storage.bucket)
        await self.storage.delete(file_path)
        await self.profiles.clear_resume(user_id)
        self.invalidator.notify(user_id)
