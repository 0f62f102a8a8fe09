"""
Profile Router - Resume upload and background resume parsing
"""
import logging
from fastapi import APIRouter, Depends, UploadFile, File

from ..models import User
from ..services.auth import get_current_user
from ..services.errors import ResumePipelineError
from ..services.resume_parsing import ResumeParsingService
from ..dependencies import get_parsing_service
from ..schemas.resume import (
    TriggerParsingResponse, JobStatusResponse, LatestJobStatusResponse,
    UploadResumeResponse, ParsedResumeResponse, MessageResponse, ErrorResponse
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/profile",
    tags=["Profile"],
    responses={
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)


# ============================================================================
# Resume File
# ============================================================================

@router.post("/upload-resume", response_model=UploadResumeResponse)
async def upload_resume(
    file: UploadFile = File(...),
    service: ResumeParsingService = Depends(get_parsing_service),
    current_user: User = Depends(get_current_user)
):
    """
    Upload a resume, then start parsing it in the background.

    The file and profile reference are saved first. If starting the parse
    fails (e.g. a job is already running) the upload still succeeds and the
    reason is returned in parsing_error; the client can retry later.
    """
    content = await file.read()
    resume_url = await service.upload_resume(
        current_user.id, file.filename, content, file.content_type
    )

    job_id = None
    parsing_error = None
    try:
        job_id = await service.trigger(current_user.id)
    except ResumePipelineError as e:
        logger.info("Parsing not started after upload for user %s: %s", current_user.id, e.message)
        parsing_error = e.message

    return UploadResumeResponse(
        url=resume_url,
        file_name=file.filename,
        job_id=job_id,
        parsing_error=parsing_error
    )


@router.delete("/resume", response_model=MessageResponse)
async def delete_resume(
    service: ResumeParsingService = Depends(get_parsing_service),
    current_user: User = Depends(get_current_user)
):
    await service.delete_resume(current_user.id)
    return MessageResponse(message="Resume deleted")


@router.get("/parsed-resume", response_model=ParsedResumeResponse)
async def get_parsed_resume(
    service: ResumeParsingService = Depends(get_parsing_service),
    current_user: User = Depends(get_current_user)
):
    """Parsed resume data and last parsing error for the current user."""
    profile = await service.profiles.get(current_user.id)
    if not profile:
        return ParsedResumeResponse()

    return ParsedResumeResponse(
        resume_url=profile.resume_url,
        resume_filename=profile.resume_filename,
        parsed_resume_data=profile.parsed_resume_data,
        skills=profile.skills or [],
        resume_parsed_at=profile.resume_parsed_at,
        resume_parsing_error=profile.resume_parsing_error
    )


# ============================================================================
# Parsing Jobs
# ============================================================================

@router.post("/parse-resume", response_model=TriggerParsingResponse)
async def trigger_resume_parsing(
    service: ResumeParsingService = Depends(get_parsing_service),
    current_user: User = Depends(get_current_user)
):
    """Start parsing the current resume. Also used as the retry action."""
    job_id = await service.trigger(current_user.id)
    return TriggerParsingResponse(job_id=job_id)


@router.get("/resume-status/{job_id}", response_model=JobStatusResponse)
async def get_resume_status(
    job_id: str,
    service: ResumeParsingService = Depends(get_parsing_service),
    current_user: User = Depends(get_current_user)
):
    """Check the status of a resume parsing job."""
    report = await service.get_status(job_id, current_user.id)
    return JobStatusResponse(
        job_id=report.job_id,
        status=report.status.value,
        error=report.error
    )


@router.get("/resume-status", response_model=LatestJobStatusResponse)
async def get_latest_resume_status(
    service: ResumeParsingService = Depends(get_parsing_service),
    current_user: User = Depends(get_current_user)
):
    """Get the status of the user's most recent resume parsing job."""
    report = await service.latest_status(current_user.id)
    if not report:
        return LatestJobStatusResponse(status="none", message="No resume parsing jobs found")

    return LatestJobStatusResponse(
        job_id=report.job_id,
        status=report.status.value,
        error=report.error,
        can_retry=report.can_retry
    )
