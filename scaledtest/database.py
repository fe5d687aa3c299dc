"""PostgreSQL connection for the team membership store."""

from typing import AsyncGenerator

from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from scaledtest.config import get_settings
from scaledtest.utils.logger import get_logger

log = get_logger(__name__)


class Base(DeclarativeBase):
    pass


settings = get_settings()
engine = create_async_engine(
    settings.postgres_url,
    echo=settings.sql_echo,
    pool_pre_ping=True,
    pool_recycle=1800,
)

AsyncSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session, committed when the handler returns and rolled back on error."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Create the teams tables if missing and seed the default team."""
    from scaledtest.models.team import DEFAULT_TEAM_ID, Team

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        await conn.execute(
            insert(Team)
            .values(
                id=DEFAULT_TEAM_ID,
                name="Default Team",
                description="Default team for all users",
                is_default=True,
                created_by="system",
            )
            .on_conflict_do_nothing(index_elements=[Team.id])
        )
    log.info("team tables ready", default_team_id=str(DEFAULT_TEAM_ID))
