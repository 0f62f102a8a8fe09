from functools import lru_cache

from .config import get_settings
from .database import async_session_maker
from .repositories import SqlAlchemyJobRepository, SqlAlchemyProfileRepository
from .services.invalidation import ProfileCacheInvalidator
from .services.resume_parsing import ResumeParsingService
from .services.storage import ObjectStorage, SupabaseStorage, LocalStorage


@lru_cache(maxsize=1)
def get_storage() -> ObjectStorage:
    settings = get_settings()
    if settings.supabase_enabled:
        return SupabaseStorage(
            settings.supabase_url,
            settings.supabase_service_role_key,
            bucket=settings.resume_bucket
        )
    return LocalStorage(settings.local_storage_dir, bucket=settings.resume_bucket)


@lru_cache(maxsize=1)
def get_invalidator() -> ProfileCacheInvalidator:
    return ProfileCacheInvalidator()


@lru_cache(maxsize=1)
def get_parsing_service() -> ResumeParsingService:
    """One service per process so detached jobs are tracked in one place."""
    settings = get_settings()
    return ResumeParsingService(
        jobs=SqlAlchemyJobRepository(async_session_maker),
        profiles=SqlAlchemyProfileRepository(async_session_maker),
        storage=get_storage(),
        invalidator=get_invalidator(),
        max_resume_size=settings.max_resume_size_bytes,
    )
