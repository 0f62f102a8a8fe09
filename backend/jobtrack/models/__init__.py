from .user import User
from .profile import CandidateProfile
from .resume_job import (
    ResumeParsingJob, ResumeParsingStatus,
    ACTIVE_STATUSES, TERMINAL_STATUSES, ALLOWED_TRANSITIONS, statuses_leading_to
)

__all__ = [
    "User",
    "CandidateProfile",
    # Resume parsing job
    "ResumeParsingJob", "ResumeParsingStatus",
    "ACTIVE_STATUSES", "TERMINAL_STATUSES", "ALLOWED_TRANSITIONS", "statuses_leading_to"
]
