from pydantic_settings import BaseSettings
from functools import lru_cache
import os


class Settings(BaseSettings):
    app_name: str = "JobTrack Resume Parsing API"
    debug: bool = os.getenv("DEBUG", "false").lower() == "true"
    log_level: str = "INFO"

    # Database - supports both SQLite (local) and PostgreSQL (production)
    database_url: str = "sqlite+aiosqlite:///./jobtrack.db"

    # Security - MUST be set via environment variables in production
    secret_key: str = "your-secret-key-change-in-production"
    algorithm: str = "HS256"

    # CORS - comma-separated list of allowed origins
    cors_origins: str = "http://localhost:3000,http://localhost:5173"

    # Supabase Storage (resume files). Local disk is used when unset.
    supabase_url: str = ""
    supabase_service_role_key: str = ""
    resume_bucket: str = "resumes"
    local_storage_dir: str = "./uploads"
    max_resume_size_bytes: int = 5 * 1024 * 1024  # 5MB

    # AI/LLM Configuration
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.0-flash"
    gemini_max_output_tokens: int = 4096

    # Client polling
    poll_interval_seconds: float = 2.0
    poll_backoff_factor: float = 1.0  # 1.0 keeps a fixed interval
    poll_max_interval_seconds: float = 30.0
    poll_max_duration_seconds: float = 300.0  # 5 minutes

    class Config:
        env_file = ".env"
        extra = "ignore"
        # Make field names case-insensitive for environment variables
        case_sensitive = False

    def get_cors_origins(self) -> list:
        """Parse CORS origins from comma-separated string"""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def supabase_enabled(self) -> bool:
        return bool(self.supabase_url and self.supabase_service_role_key)


@lru_cache()
def get_settings() -> Settings:
    return Settings()
