from __future__ import annotations

import logging
from collections.abc import Generator, Iterator
from contextlib import contextmanager

from fastapi import HTTPException, status
from sqlalchemy import create_engine, event
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from wemadeit.core.config import get_settings


logger = logging.getLogger("wemadeit.storage")


class Base(DeclarativeBase):
    pass


def _build_engine():  # type: ignore[no-untyped-def]
    database_url = get_settings().database_url
    if database_url.startswith("sqlite"):
        sqlite_engine = create_engine(database_url, connect_args={"check_same_thread": False})

        @event.listens_for(sqlite_engine, "connect")
        def _enable_foreign_keys(dbapi_connection, _connection_record) -> None:  # type: ignore[no-untyped-def]
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return sqlite_engine
    return create_engine(database_url, pool_pre_ping=True)


engine = _build_engine()
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


def get_db() -> Generator[Session, None, None]:
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@contextmanager
def atomic(session: Session, operation: str) -> Iterator[Session]:
    """Run one logical write as a single transaction.

    Commits when the block completes. Any failure rolls back everything the
    block flushed, so callers never observe a partially applied operation.
    """
    try:
        yield session
        session.commit()
    except HTTPException:
        session.rollback()
        raise
    except IntegrityError as exc:
        session.rollback()
        logger.warning("storage.conflict", extra={"operation": operation, "error": str(exc.orig)})
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"{operation} conflicts with existing data") from exc
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception("storage.failed", extra={"operation": operation, "error": str(exc)})
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"{operation} failed") from exc
