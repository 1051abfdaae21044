"""Database session and engine management."""
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import QueuePool

from push_notifier.config import settings

_database_url = str(settings.DATABASE_URL)
_engine_options = {"pool_pre_ping": True}
if not _database_url.startswith("sqlite"):
    _engine_options.update(
        poolclass=QueuePool,
        pool_size=10,
        max_overflow=20,
        pool_recycle=3600,  # Recycle connections after 1 hour
    )

engine = create_engine(_database_url, **_engine_options)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    expire_on_commit=False,  # Keep objects usable after commit
)
