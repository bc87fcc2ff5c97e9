# forexhub/database.py
"""
SQLAlchemy base, engine and session factory helpers.

No engine is created at import time: the database URL is optional and the
service must boot (in volatile mode) without one. The durable adapter and
the connectivity prober each build their own engine from these helpers.
"""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import NullPool

Base = declarative_base()


def normalize_database_url(url: str) -> str:
    # Hosted Postgres hands out postgresql:// but SQLAlchemy needs postgresql+psycopg2://
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+psycopg2://", 1)
    return url


def _connect_args(url: str, timeout_seconds: float | None) -> dict:
    if url.startswith("sqlite"):
        # Executor threads share the engine; wait on the file lock instead of failing fast
        return {"check_same_thread": False, "timeout": timeout_seconds or 30}
    if url.startswith("postgresql") and timeout_seconds:
        return {"connect_timeout": max(1, int(timeout_seconds))}
    return {}


def create_db_engine(
    url: str,
    pool_size: int = 5,
    connect_timeout_seconds: float | None = None,
) -> Engine:
    """Engine for request traffic: pooled, with pre-ping so dead connections are replaced."""
    url = normalize_database_url(url)
    kwargs: dict = {
        "future": True,
        "echo": False,
        "pool_pre_ping": True,
        "connect_args": _connect_args(url, connect_timeout_seconds),
    }
    if not url.startswith("sqlite"):
        kwargs["pool_size"] = pool_size
    return create_engine(url, **kwargs)


def create_probe_engine(url: str, timeout_seconds: float) -> Engine:
    """Engine for connectivity probes: no pooling, every probe opens a fresh connection."""
    url = normalize_database_url(url)
    return create_engine(
        url,
        future=True,
        poolclass=NullPool,
        connect_args=_connect_args(url, timeout_seconds),
    )


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=engine,
        future=True,
        expire_on_commit=False,
    )


def init_db(engine: Engine) -> None:
    """
    Import models and create tables if they don't exist.
    Alembic is the real migration tool, but this keeps local dev sane.
    """
    from forexhub import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
