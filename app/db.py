"""Database setup and session utilities for SQLAlchemy.

This module centralizes engine/session construction, the metadata base, and helpers:
- make_engine / make_session_factory: build the engine and session factory owned by
  the application's Services container (no module-level engine).
- init_db: Ensures the pgvector extension exists and creates required tables and the
  IVFFLAT index over the embeddings.embedding column for vector similarity search.
- session_scope: Context-managed transactional scope for imperative workflows.
- get_db: FastAPI dependency to yield a per-request SQLAlchemy Session.
"""
from contextlib import contextmanager
from typing import Generator

from fastapi import Request
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

Base = declarative_base()


def make_engine(url: str) -> Engine:
    """Create a SQLAlchemy engine for the given database URL."""
    return create_engine(url, pool_pre_ping=True, future=True)


def make_session_factory(engine: Engine) -> sessionmaker:
    """Create a session factory bound to ``engine``."""
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)


def init_db(engine: Engine) -> None:
    """Initialize database extensions, tables, and vector indexes.

    On PostgreSQL, ensures the pgvector extension is available before creating
    tables and creates the IVFFLAT cosine index over embeddings.embedding if
    missing. Other dialects (SQLite in tests) only get the tables.

    This function is idempotent and safe to run multiple times.
    """
    is_postgres = engine.dialect.name == "postgresql"
    if is_postgres:
        with engine.connect() as conn:
            conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
            conn.commit()

    # Import models after Base is defined
    from app import models  # noqa: F401

    Base.metadata.create_all(bind=engine)

    if not is_postgres:
        return
    with engine.connect() as conn:
        conn.execute(
            text(
                """
                DO $$
                BEGIN
                    IF NOT EXISTS (
                        SELECT 1 FROM pg_indexes WHERE indexname = 'idx_embeddings_embedding_ivfflat'
                    ) THEN
                        CREATE INDEX idx_embeddings_embedding_ivfflat
                        ON embeddings USING ivfflat (embedding vector_cosine_ops)
                        WITH (lists = 100);
                    END IF;
                END$$;
                """
            )
        )
        conn.commit()


@contextmanager
def session_scope(session_factory: sessionmaker):
    """Provide a transactional scope around a series of operations.

    Yields:
        Session: A session from ``session_factory``.

    Notes:
        - Commits on successful exit.
        - Rolls back and re-raises on exception.
        - Always closes the session at the end.
    """
    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def get_db(request: Request) -> Generator[Session, None, None]:
    """FastAPI dependency that yields a SQLAlchemy Session.

    The session factory comes from the Services container on ``app.state``.
    Ensures the session is closed after the request finishes.
    """
    db = request.app.state.services.session_factory()
    try:
        yield db
    finally:
        db.close()
