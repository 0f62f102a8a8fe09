"""
Resume Parsing Job Model - Tracks background resume processing status.
"""
import uuid
from enum import Enum
from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Index, text, Enum as SQLEnum
from ..database import Base
from ..services.errors import InvalidStatusTransition


class ResumeParsingStatus(str, Enum):
    """Status of a resume parsing job."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


ACTIVE_STATUSES = (ResumeParsingStatus.PENDING, ResumeParsingStatus.PROCESSING)
TERMINAL_STATUSES = (ResumeParsingStatus.COMPLETED, ResumeParsingStatus.FAILED)

ALLOWED_TRANSITIONS = {
    ResumeParsingStatus.PENDING: {ResumeParsingStatus.PROCESSING, ResumeParsingStatus.FAILED},
    ResumeParsingStatus.PROCESSING: {ResumeParsingStatus.COMPLETED, ResumeParsingStatus.FAILED},
    ResumeParsingStatus.COMPLETED: set(),
    ResumeParsingStatus.FAILED: set(),
}


def statuses_leading_to(new_status: ResumeParsingStatus) -> list:
    """Statuses a job may be in for a move to new_status to be allowed."""
    return [status for status, targets in ALLOWED_TRANSITIONS.items() if new_status in targets]


# At most one in-flight job per user, enforced by the database
_ACTIVE_WHERE = text("status IN ('pending', 'processing')")


def _utcnow():
    return datetime.now(timezone.utc)


class ResumeParsingJob(Base):
    """
    Tracks resume parsing jobs for background processing.
    Allows users to check status without blocking. Rows are never deleted.
    """
    __tablename__ = "resume_parsing_jobs"
    __table_args__ = (
        Index(
            "uq_resume_parsing_jobs_active_user",
            "user_id",
            unique=True,
            sqlite_where=_ACTIVE_WHERE,
            postgresql_where=_ACTIVE_WHERE,
        ),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    # Reference to the uploaded file, captured when the job is created
    resume_url = Column(String(500), nullable=False)

    # Status tracking
    status = Column(
        SQLEnum(
            ResumeParsingStatus,
            values_callable=lambda statuses: [s.value for s in statuses],
            native_enum=False,
            length=20,
        ),
        default=ResumeParsingStatus.PENDING,
        nullable=False,
        index=True,
    )
    error_message = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    def transition_to(self, new_status: ResumeParsingStatus, error_message: str = None) -> None:
        """Move the job to new_status, stamping timestamps on the way."""
        current = ResumeParsingStatus(self.status)
        if new_status not in ALLOWED_TRANSITIONS[current]:
            raise InvalidStatusTransition(
                f"Cannot move resume parsing job {self.id} from {current.value} to {new_status.value}"
            )

        for column, value in self.transition_values(new_status, error_message).items():
            setattr(self, column, value)

    @staticmethod
    def transition_values(new_status: ResumeParsingStatus, error_message: str = None) -> dict:
        """Column values written when a job enters new_status."""
        values = {"status": new_status}
        if new_status == ResumeParsingStatus.PROCESSING:
            values["started_at"] = _utcnow()
        if new_status.is_terminal:
            values["completed_at"] = _utcnow()
        if new_status == ResumeParsingStatus.FAILED:
            values["error_message"] = error_message
        return values
