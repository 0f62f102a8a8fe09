"""
Persistence boundary for the resume parsing pipeline.

The background parser runs outside any request, so each repository call opens
its own short session from the session maker and commits before returning.

Status changes are conditional updates: a job only moves if it is still in a
status the transition table allows, so a job finished by another process
(e.g. failed by startup recovery in a second worker) is never overwritten.
"""
import logging
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .models import (
    CandidateProfile, ResumeParsingJob, ResumeParsingStatus, ACTIVE_STATUSES, statuses_leading_to
)
from .services.errors import AlreadyInProgress, JobNotFound, ProfileUpdateFailure

logger = logging.getLogger(__name__)


class JobRepository:
    """Abstract store of resume parsing jobs."""

    async def get(self, job_id: str) -> Optional[ResumeParsingJob]:
        raise NotImplementedError

    async def get_for_user(self, job_id: str, user_id: int) -> Optional[ResumeParsingJob]:
        raise NotImplementedError

    async def find_active_for_user(self, user_id: int) -> Optional[ResumeParsingJob]:
        raise NotImplementedError

    async def latest_for_user(self, user_id: int) -> Optional[ResumeParsingJob]:
        raise NotImplementedError

    async def create_pending(self, user_id: int, resume_url: str) -> ResumeParsingJob:
        raise NotImplementedError

    async def mark_processing(self, job_id: str) -> bool:
        """Returns False if the job was no longer pending."""
        raise NotImplementedError

    async def mark_failed(self, job_id: str, error_message: str) -> bool:
        """Returns False if the job had already reached a terminal status."""
        raise NotImplementedError

    async def complete(self, job_id: str, user_id: int, parsed_data: dict, skills: List[str]) -> bool:
        """
        Mark the job completed and store the parse result on the owner's
        profile as one unit. Returns False, writing nothing, if the job was
        no longer processing.
        """
        raise NotImplementedError

    async def fail_interrupted(self, error_message: str, created_before: datetime) -> List[Tuple[str, int]]:
        raise NotImplementedError


class ProfileRepository:
    """Abstract store of the profile fields the parser reads and writes."""

    async def get(self, user_id: int) -> Optional[CandidateProfile]:
        raise NotImplementedError

    async def set_resume(self, user_id: int, resume_url: str, filename: str) -> CandidateProfile:
        raise NotImplementedError

    async def clear_resume(self, user_id: int) -> None:
        raise NotImplementedError

    async def save_parsing_error(self, user_id: int, error_message: str) -> bool:
        raise NotImplementedError


async def _load_profile(db: AsyncSession, user_id: int) -> Optional[CandidateProfile]:
    result = await db.execute(
        select(CandidateProfile).where(CandidateProfile.user_id == user_id)
    )
    return result.scalar_one_or_none()


class SqlAlchemyJobRepository(JobRepository):
    def __init__(self, session_maker: async_sessionmaker):
        self.session_maker = session_maker

    async def get(self, job_id: str) -> Optional[ResumeParsingJob]:
        async with self.session_maker() as db:
            return await db.get(ResumeParsingJob, job_id)

    async def get_for_user(self, job_id: str, user_id: int) -> Optional[ResumeParsingJob]:
        async with self.session_maker() as db:
            result = await db.execute(
                select(ResumeParsingJob).where(
                    ResumeParsingJob.id == job_id,
                    ResumeParsingJob.user_id == user_id
                )
            )
            return result.scalar_one_or_none()

    async def find_active_for_user(self, user_id: int) -> Optional[ResumeParsingJob]:
        async with self.session_maker() as db:
            result = await db.execute(
                select(ResumeParsingJob)
                .where(
                    ResumeParsingJob.user_id == user_id,
                    ResumeParsingJob.status.in_(ACTIVE_STATUSES)
                )
                .order_by(ResumeParsingJob.created_at.desc())
                .limit(1)
            )
            return result.scalar_one_or_none()

    async def latest_for_user(self, user_id: int) -> Optional[ResumeParsingJob]:
        async with self.session_maker() as db:
            result = await db.execute(
                select(ResumeParsingJob)
                .where(ResumeParsingJob.user_id == user_id)
                .order_by(ResumeParsingJob.created_at.desc())
                .limit(1)
            )
            return result.scalar_one_or_none()

    async def create_pending(self, user_id: int, resume_url: str) -> ResumeParsingJob:
        """Insert a pending job; the active-job unique index rejects a second one."""
        async with self.session_maker() as db:
            job = ResumeParsingJob(
                user_id=user_id,
                resume_url=resume_url,
                status=ResumeParsingStatus.PENDING
            )
            db.add(job)
            try:
                await db.commit()
            except IntegrityError:
                await db.rollback()
                raise AlreadyInProgress()
            await db.refresh(job)
            return job

    @staticmethod
    async def _apply_transition(
        db: AsyncSession, job_id: str, status: ResumeParsingStatus, error_message: str = None
    ) -> bool:
        """UPDATE ... WHERE status allows the move. True if the row changed."""
        result = await db.execute(
            update(ResumeParsingJob)
            .where(
                ResumeParsingJob.id == job_id,
                ResumeParsingJob.status.in_(statuses_leading_to(status))
            )
            .values(**ResumeParsingJob.transition_values(status, error_message))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def _transition(self, job_id: str, status: ResumeParsingStatus, error_message: str = None) -> bool:
        async with self.session_maker() as db:
            changed = await self._apply_transition(db, job_id, status, error_message)
            if not changed and await db.get(ResumeParsingJob, job_id) is None:
                raise JobNotFound()
            await db.commit()
            return changed

    async def mark_processing(self, job_id: str) -> bool:
        return await self._transition(job_id, ResumeParsingStatus.PROCESSING)

    async def mark_failed(self, job_id: str, error_message: str) -> bool:
        return await self._transition(job_id, ResumeParsingStatus.FAILED, error_message)

    async def complete(self, job_id: str, user_id: int, parsed_data: dict, skills: List[str]) -> bool:
        try:
            async with self.session_maker() as db:
                if not await self._apply_transition(db, job_id, ResumeParsingStatus.COMPLETED):
                    await db.rollback()
                    return False

                profile = await _load_profile(db, user_id)
                if not profile:
                    await db.rollback()
                    raise ProfileUpdateFailure("Failed to update profile: profile not found")
                profile.parsed_resume_data = parsed_data
                profile.resume_parsed_at = datetime.now(timezone.utc)
                profile.resume_parsing_error = None
                profile.skills = list(skills)
                await db.commit()
                return True
        except SQLAlchemyError as e:
            raise ProfileUpdateFailure(f"Failed to update profile: {e}")

    async def fail_interrupted(self, error_message: str, created_before: datetime) -> List[Tuple[str, int]]:
        """Fail in-flight jobs created before created_before. Returns (job_id, user_id) pairs."""
        async with self.session_maker() as db:
            result = await db.execute(
                select(ResumeParsingJob.id, ResumeParsingJob.user_id).where(
                    ResumeParsingJob.status.in_(ACTIVE_STATUSES),
                    ResumeParsingJob.created_at < created_before
                )
            )
            failed = []
            for job_id, user_id in result.all():
                if await self._apply_transition(db, job_id, ResumeParsingStatus.FAILED, error_message):
                    failed.append((job_id, user_id))
            await db.commit()
            return failed


class SqlAlchemyProfileRepository(ProfileRepository):
    def __init__(self, session_maker: async_sessionmaker):
        self.session_maker = session_maker

    async def get(self, user_id: int) -> Optional[CandidateProfile]:
        async with self.session_maker() as db:
            return await _load_profile(db, user_id)

    async def set_resume(self, user_id: int, resume_url: str, filename: str) -> CandidateProfile:
        async with self.session_maker() as db:
            profile = await _load_profile(db, user_id)
            if not profile:
                profile = CandidateProfile(user_id=user_id)
                db.add(profile)
            profile.resume_url = resume_url[:500]
            profile.resume_filename = filename[:255] if filename else None
            await db.commit()
            await db.refresh(profile)
            return profile

    async def clear_resume(self, user_id: int) -> None:
        async with self.session_maker() as db:
            profile = await _load_profile(db, user_id)
            if profile:
                profile.resume_url = None
                profile.resume_filename = None
                await db.commit()

    async def save_parsing_error(self, user_id: int, error_message: str) -> bool:
        """Record the error; parsed data from an earlier run is left as is."""
        async with self.session_maker() as db:
            profile = await _load_profile(db, user_id)
            if not profile:
                return False
            profile.resume_parsing_error = error_message
            await db.commit()
            return True
