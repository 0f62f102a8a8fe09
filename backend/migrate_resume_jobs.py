"""
Migration: Add resume_parsing_jobs table and profile parsing columns.

Run this script against an existing PostgreSQL database. Fresh databases (and
SQLite) get the same schema from init_db() at app startup.
"""
import asyncio
from sqlalchemy import text
from jobtrack.database import engine, init_db


async def migrate(bind=None):
    """Create the resume_parsing_jobs table and add parsing fields to candidate_profiles."""
    bind = bind or engine

    if bind.dialect.name != "postgresql":
        await init_db(bind)
        print("✅ Created tables with init_db (non-PostgreSQL database)")
        return

    # Execute each statement separately (asyncpg requirement)
    statements = [
        """
        CREATE TABLE IF NOT EXISTS resume_parsing_jobs (
            id VARCHAR(36) PRIMARY KEY,
            user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            resume_url VARCHAR(500) NOT NULL,
            status VARCHAR(20) NOT NULL DEFAULT 'pending',
            error_message TEXT,
            created_at TIMESTAMP WITH TIME ZONE DEFAULT NOW(),
            started_at TIMESTAMP WITH TIME ZONE,
            completed_at TIMESTAMP WITH TIME ZONE
        )
        """,
        "CREATE INDEX IF NOT EXISTS ix_resume_parsing_jobs_user_id ON resume_parsing_jobs(user_id)",
        "CREATE INDEX IF NOT EXISTS ix_resume_parsing_jobs_status ON resume_parsing_jobs(status)",
        # At most one pending/processing job per user
        """
        CREATE UNIQUE INDEX IF NOT EXISTS uq_resume_parsing_jobs_active_user
        ON resume_parsing_jobs(user_id)
        WHERE status IN ('pending', 'processing')
        """,
        "ALTER TABLE candidate_profiles ADD COLUMN IF NOT EXISTS parsed_resume_data JSON",
        "ALTER TABLE candidate_profiles ADD COLUMN IF NOT EXISTS resume_parsed_at TIMESTAMP WITH TIME ZONE",
        "ALTER TABLE candidate_profiles ADD COLUMN IF NOT EXISTS resume_parsing_error TEXT",
        "ALTER TABLE candidate_profiles ADD COLUMN IF NOT EXISTS skills JSON",
    ]

    async with bind.begin() as conn:
        for sql in statements:
            await conn.execute(text(sql))
        print("✅ Created resume_parsing_jobs table and indexes")


if __name__ == "__main__":
    print("Running migration: Add resume_parsing_jobs table...")
    asyncio.run(migrate())
    print("Migration complete!")
