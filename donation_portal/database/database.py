"""
Async database engine, session factory and FastAPI dependency
"""
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
import structlog

from donation_portal.core.config import get_settings
from donation_portal.models import Base

settings = get_settings()
logger = structlog.get_logger(__name__)

# Create async engine
engine = create_async_engine(
    settings.database_url,
    echo=False,
    pool_pre_ping=True,
    pool_recycle=300,
)

# Create async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def init_db(bind=None):
    """Initialize database - create tables"""
    bind = bind or engine
    try:
        async with bind.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created successfully")
    except Exception as e:
        logger.error("Failed to create database tables", error=str(e))
        raise


async def ping_db(session_factory=AsyncSessionLocal) -> bool:
    """Round-trip a trivial query for readiness checks"""
    async with session_factory() as session:
        await session.execute(text("SELECT 1"))
    return True


async def get_db():
    """Dependency for getting database session"""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error("Database session error", error=str(e))
            raise


async def close_db():
    """Close database connections"""
    await engine.dispose()
    logger.info("Database connections closed")
