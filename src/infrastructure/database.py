"""
Async SQLAlchemy engine and session factory.

``asyncpg`` in production.  Every lifecycle operation runs inside one
session transaction; ``expire_on_commit=False`` lets the committed rows be
mapped back to entities after the transaction closes.
"""

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from src.config import settings

engine = create_async_engine(
    settings.database_url,
    echo=settings.db_echo,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    # connections dropped by the server while idle are replaced transparently
    pool_pre_ping=True,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Declarative base for the ride, request, notification, chat and SOS tables."""
