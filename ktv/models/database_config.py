"""
Database configuration and session management for KTV Request Hub.
"""

import logging
import os
from contextlib import contextmanager
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///ktv.db"


def normalize_database_url(database_url):
    """Managed Postgres hands out postgres:// URLs, SQLAlchemy wants postgresql://"""
    database_url = database_url or DEFAULT_DATABASE_URL
    if database_url.startswith("postgres://"):
        database_url = database_url.replace("postgres://", "postgresql://", 1)
    return database_url


def build_engine(database_url):
    database_url = normalize_database_url(database_url)
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url or database_url == "sqlite://":
            # One shared connection, otherwise every session sees an empty database
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, echo=False, **kwargs)

    return create_engine(
        database_url,
        echo=False,
        pool_size=10,
        max_overflow=20,
        pool_pre_ping=True,
        pool_recycle=300,
    )


engine = build_engine(os.getenv("DATABASE_URL"))
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def configure_engine(database_url):
    """Rebind sessions to another database (app factory and tests)."""
    global engine
    engine = build_engine(database_url)
    SessionLocal.configure(bind=engine)
    return engine


def init_db():
    """Initialize database tables"""
    # Table classes must be imported so they register on Base.metadata
    from . import song_models, request_models, user_models, feedback_models  # noqa: F401

    logger.info("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created successfully")


def drop_db():
    Base.metadata.drop_all(bind=engine)


@contextmanager
def get_db():
    """Context manager for database sessions with automatic commit/rollback"""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
