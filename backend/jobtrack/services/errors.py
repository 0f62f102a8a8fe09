"""
Error taxonomy for the resume parsing pipeline.

Every error carries a stable ``code`` for API clients and the HTTP status the
API answers with. The trigger and status paths raise these; the background
processor catches them and records the message on the job and the profile.
"""


class ResumePipelineError(Exception):
    code = "unexpected_error"
    status_code = 500
    default_message = "An unexpected error occurred"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"success": False, "error": self.code, "detail": self.message}


class Unauthorized(ResumePipelineError):
    code = "unauthorized"
    status_code = 401
    default_message = "Unauthorized"


class NoResumeFound(ResumePipelineError):
    code = "no_resume_found"
    status_code = 400
    default_message = "No resume found. Please upload a resume first."


class AlreadyInProgress(ResumePipelineError):
    code = "already_in_progress"
    status_code = 409
    default_message = "A parsing job is already in progress. Please wait for it to complete."


class JobNotFound(ResumePipelineError):
    code = "not_found"
    status_code = 404
    default_message = "Job not found"


class InvalidUpload(ResumePipelineError):
    code = "invalid_upload"
    status_code = 400
    default_message = "Invalid resume file"


class InvalidReference(ResumePipelineError):
    code = "invalid_reference"
    status_code = 422
    default_message = "Invalid resume URL format"


class DownloadFailure(ResumePipelineError):
    code = "download_failure"
    status_code = 502
    default_message = "Failed to download resume"


class ExtractionFailure(ResumePipelineError):
    code = "extraction_failure"
    status_code = 422
    default_message = "No text extracted from resume"


class ParsingFailure(ResumePipelineError):
    code = "parsing_failure"
    status_code = 502
    default_message = "Resume parsing failed"


class ProfileUpdateFailure(ResumePipelineError):
    code = "profile_update_failure"
    status_code = 500
    default_message = "Failed to update profile"


class UnexpectedError(ResumePipelineError):
    pass


class InvalidStatusTransition(ResumePipelineError):
    code = "invalid_transition"
    status_code = 500
    default_message = "Invalid resume parsing job status transition"


class StorageError(ResumePipelineError):
    code = "storage_error"
    status_code = 502
    default_message = "Storage request failed"
