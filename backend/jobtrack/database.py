from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool
from .config import get_settings

settings = get_settings()


def build_engine(database_url: str, echo: bool = False):
    """Create an async engine with pool settings suited to the database type."""
    # Supabase/PostgreSQL with PgBouncer needs statement_cache_size=0
    # SQLite doesn't support these parameters
    if "postgresql" in database_url:
        return create_async_engine(
            database_url,
            echo=echo,
            connect_args={
                "statement_cache_size": 0,
                "prepared_statement_cache_size": 0,
            },
            pool_pre_ping=True,  # Verify connections before use
            pool_recycle=300,    # Recycle connections every 5 minutes
            pool_size=20,        # Base pool size for concurrent connections
            max_overflow=30,     # Allow up to 50 total connections per worker
        )
    # SQLite connections are cheap; don't keep them bound to one event loop
    return create_async_engine(database_url, echo=echo, poolclass=NullPool)


engine = build_engine(settings.database_url, echo=settings.debug)
async_session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

Base = declarative_base()


async def get_db():
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def init_db(bind=None):
    # Register every model on Base.metadata before create_all
    from . import models  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
