"""
Shared fixtures for the resume parsing tests.

Collaborators (storage, text extraction, AI parser) are faked; the job and
profile stores run against a real SQLite database.
"""
import asyncio
import os
import tempfile
import uuid

# Set test environment before the app reads its settings
_TEST_DIR = tempfile.mkdtemp(prefix="jobtrack-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_TEST_DIR, 'api.db')}"
os.environ["LOCAL_STORAGE_DIR"] = os.path.join(_TEST_DIR, "uploads")
os.environ["SUPABASE_URL"] = ""
os.environ["GEMINI_API_KEY"] = ""
os.environ["SECRET_KEY"] = "test-secret-key"

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from jobtrack.database import build_engine, init_db
from jobtrack.models import CandidateProfile, ResumeParsingJob, User
from jobtrack.repositories import SqlAlchemyJobRepository, SqlAlchemyProfileRepository
from jobtrack.services.document_extractor import ExtractedText
from jobtrack.services.errors import StorageError
from jobtrack.services.invalidation import ProfileCacheInvalidator
from jobtrack.services.resume_parser import ParsedResume
from jobtrack.services.resume_parsing import ResumeParsingService
from jobtrack.services.storage import ObjectStorage

STORAGE_BASE = "https://test.supabase.co/storage/v1/object/public/resumes"


# =============================================================================
# FAKE COLLABORATORS
# =============================================================================

class FakeStorage(ObjectStorage):
    def __init__(self, bucket: str = "resumes"):
        self.bucket = bucket
        self.files = {}
        self.download_error = None
        self.downloads = []

    async def upload(self, file_path, content, content_type):
        self.files[file_path] = content
        return f"{STORAGE_BASE}/{file_path}"

    async def download(self, file_path):
        self.downloads.append(file_path)
        if self.download_error:
            raise self.download_error
        if file_path not in self.files:
            raise StorageError(f"Object not found: {file_path}")
        return self.files[file_path]

    async def delete(self, file_path):
        self.files.pop(file_path, None)


class FakeExtractor:
    def __init__(self, text="John Doe, Go, SQL"):
        self.text = text
        self.error = None
        self.calls = []

    async def __call__(self, data, document_type):
        self.calls.append((data, document_type))
        if self.error:
            raise self.error
        return ExtractedText(text=self.text)


class FakeParser:
    def __init__(self, skills=None):
        self.skills = ["Go", "SQL"] if skills is None else skills
        self.error = None
        self.gate = None  # asyncio.Event; parse waits on it when set
        self.calls = []

    async def __call__(self, text, user_id):
        self.calls.append((text, user_id))
        if self.gate is not None:
            await self.gate.wait()
        if self.error:
            raise self.error
        return ParsedResume(
            skills=list(self.skills),
            experience=[{"company": "Acme", "title": "Engineer", "start_date": "2020-01"}],
            education=[],
            summary="Backend engineer.",
        )


# =============================================================================
# HELPERS
# =============================================================================

async def create_user(session_maker, resume_url=None, parsed_resume_data=None, skills=None) -> int:
    async with session_maker() as db:
        user = User(email=f"{uuid.uuid4().hex[:10]}@example.com", name="Test User")
        db.add(user)
        await db.flush()
        if resume_url is not None or parsed_resume_data is not None:
            db.add(CandidateProfile(
                user_id=user.id,
                resume_url=resume_url,
                parsed_resume_data=parsed_resume_data,
                skills=skills,
            ))
        await db.commit()
        return user.id


async def count_jobs(session_maker, user_id) -> int:
    async with session_maker() as db:
        result = await db.execute(select(ResumeParsingJob).where(ResumeParsingJob.user_id == user_id))
        return len(result.scalars().all())


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def session_maker(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    asyncio.run(init_db(engine))
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    asyncio.run(engine.dispose())


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def extractor():
    return FakeExtractor()


@pytest.fixture
def parser():
    return FakeParser()


@pytest.fixture
def invalidated():
    return []


@pytest.fixture
def service(session_maker, storage, extractor, parser, invalidated):
    invalidator = ProfileCacheInvalidator()
    invalidator.register(invalidated.append)
    return ResumeParsingService(
        jobs=SqlAlchemyJobRepository(session_maker),
        profiles=SqlAlchemyProfileRepository(session_maker),
        storage=storage,
        extract_text=extractor,
        parse_resume=parser,
        invalidator=invalidator,
    )
