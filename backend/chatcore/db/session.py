"""Database engine and session factory.

SQLite (default, and in-memory for tests) or any SQLAlchemy URL such as
PostgreSQL. Conversations are written on every message, so server databases
get a pre-pinged connection pool.
"""
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool, StaticPool

from chatcore.core.config import settings


def create_db_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        # In-memory SQLite only exists per connection: share a single one
        in_memory = url in ("sqlite://", "sqlite:///:memory:")
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool if in_memory else NullPool,
        )

    return create_engine(
        url,
        pool_size=5,
        max_overflow=10,
        pool_timeout=30,
        pool_recycle=3600,  # Recycle connections after 1 hour
        pool_pre_ping=True,
    )


engine = create_db_engine(settings.DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
