"""
SQLAlchemy engine and session factories.

Everything in this service runs on one asyncio event loop (the API handlers,
the worker claim loop and the job executor), so there is a single async engine.
The worker process builds its own engine from the same settings.
"""

from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker

from config.settings import settings


class Base(DeclarativeBase):
    """Base class for all ORM models. SQLAlchemy uses this to track table metadata."""
    pass


async_engine = create_async_engine(settings.DATABASE_URL, echo=False)
AsyncSessionLocal = async_sessionmaker(async_engine, expire_on_commit=False)
