"""
SQLAlchemy 2.x extensions for TravelPro Desk.
Provides engine and session management for the local store.
"""

import os
import logging

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, scoped_session
from sqlalchemy.pool import StaticPool

from config import DATABASE_URL, INSTANCE_DIR

logger = logging.getLogger(__name__)


def make_engine(url: str = DATABASE_URL):
    """Create an engine; in-memory SQLite shares one connection across the app."""
    if url.startswith("sqlite"):
        if ":memory:" in url or url in ("sqlite://", "sqlite:///"):
            return create_engine(
                url,
                echo=False,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        os.makedirs(INSTANCE_DIR, exist_ok=True)
        return create_engine(url, echo=False, connect_args={"check_same_thread": False})
    return create_engine(url, echo=False)


def make_session(engine):
    """Scoped session bound to the given engine."""
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    return scoped_session(factory)


def init_db(engine):
    """Initialize the database by creating the store table."""
    from storage import Base

    Base.metadata.create_all(bind=engine)
    logger.info("TravelPro store initialized at %s", engine.url)
