"""
Async SQLAlchemy engine and session factory.

``asyncpg`` drives PostgreSQL in production.  Every store builds short-lived
sessions from the factory below; reservations run inside one transaction
per call so the conditional driver update and the trip update commit
together.
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from rescue_dispatch.config import settings


class Base(DeclarativeBase):
    """Shared declarative base for drivers, hazard zones and trips."""


def session_factory_for(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # Trips and drivers are mapped to frozen domain objects after commit.
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


engine = create_async_engine(
    settings.database_url,
    echo=False,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    pool_pre_ping=True,
)

async_session_factory = session_factory_for(engine)
