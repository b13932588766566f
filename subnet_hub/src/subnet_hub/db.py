"""
Widget feed cache store using SQLAlchemy.

One row per hub holds the last good parse of its published ``feed.xml``.
Supports any SQLAlchemy URL; SQLite by default.
"""

from typing import Any, Optional

from sqlalchemy import create_engine, Column, String, Float, JSON
from sqlalchemy.orm import declarative_base, sessionmaker, Session

from .config import get_settings
from .logging_conf import get_logger

logger = get_logger(__name__)
Base = declarative_base()


class FeedCacheEntry(Base):
    """
    Last good ``{meta, entries}`` payload read from a hub's feed.
    """
    __tablename__ = "feed_cache"

    key = Column(String(2048), primary_key=True)
    data = Column(JSON, nullable=False)
    # Epoch seconds; SQLite drops tzinfo from DateTime columns.
    fetched_at = Column(Float, nullable=False)


class Database:
    """Connection to the feed cache store."""

    def __init__(self, url: Optional[str] = None):
        """
        Args:
            url: Database URL (defaults to settings)
        """
        self.url = url or get_settings().effective_database_url

        connect_args = {}
        if self.url.startswith("sqlite"):
            # The widget endpoint reads and writes from the server's worker threads.
            connect_args["check_same_thread"] = False

        self.engine = create_engine(self.url, connect_args=connect_args)
        self.SessionLocal = sessionmaker(bind=self.engine, autoflush=False)

        logger.info("feed_cache_opened", url=self.url)

    def create_tables(self) -> None:
        Base.metadata.create_all(self.engine)

    def get_session(self) -> Session:
        return self.SessionLocal()

    def load_cached_feed(self, session: Session, key: str) -> Optional[FeedCacheEntry]:
        return session.get(FeedCacheEntry, key)

    def save_cached_feed(
        self,
        session: Session,
        key: str,
        data: dict[str, Any],
        fetched_at: float,
    ) -> None:
        """Insert or replace the cached payload for ``key``."""
        session.merge(FeedCacheEntry(key=key, data=data, fetched_at=fetched_at))
        session.commit()


_db_instance: Optional[Database] = None


def get_database() -> Database:
    """Shared store for the process, created on first use."""
    global _db_instance
    if _db_instance is None:
        _db_instance = Database()
        _db_instance.create_tables()
    return _db_instance
