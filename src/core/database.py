"""Database connection and session management.

This module handles the database connection using SQLAlchemy and provides the
transaction bracket every multi-statement mutation goes through.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from config import DATA_DIR, DATABASE_URL, DB_ECHO, DB_TIMEOUT_SECONDS
from core.exceptions import PersistenceError
from models.base import Base
# Import models to ensure they are registered with Base.metadata
import models  # noqa: F401

logger = logging.getLogger(__name__)

# Writes that check-then-act on shared invariants (admin count, review
# chains) run one at a time inside a process
_WRITE_LOCK = threading.RLock()


def _casefold(value):
    return value.casefold() if isinstance(value, str) else value


def _configure_sqlite_connection(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()
    # SQLite's lower() only folds ASCII
    dbapi_connection.create_function("casefold", 1, _casefold, deterministic=True)


def make_engine(url: str = DATABASE_URL, **kwargs) -> Engine:
    """Create an engine with storage-level cascades switched on.

    SQLite connections also get a Unicode-aware ``casefold`` SQL function
    used by case-insensitive matching.

    Args:
        url: SQLAlchemy database URL.
        **kwargs: Extra keyword arguments for create_engine.

    Returns:
        Configured Engine.
    """
    if url.startswith("sqlite"):
        connect_args = kwargs.pop("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        connect_args.setdefault("timeout", DB_TIMEOUT_SECONDS)
        kwargs["connect_args"] = connect_args
    kwargs.setdefault("echo", DB_ECHO)
    new_engine = create_engine(url, **kwargs)
    if new_engine.dialect.name == "sqlite":
        event.listen(new_engine, "connect", _configure_sqlite_connection)
    return new_engine


if DATABASE_URL.startswith("sqlite:///") and DATABASE_URL != "sqlite:///:memory:":
    # Ensure data directory exists
    DATA_DIR.mkdir(parents=True, exist_ok=True)

engine = make_engine(DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(bind: Engine = engine) -> None:
    Base.metadata.create_all(bind=bind)


# Initialize DB (create tables if not exist)
init_db()


def get_db():
    """Dependency for getting a database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def atomic(db: Session) -> Iterator[Session]:
    """Run a block of statements as one all-or-nothing transaction.

    The block is serialized against other writers in this process. On success
    the session is committed; on any exception every statement issued inside
    the block is rolled back. Storage failures surface as PersistenceError,
    domain errors propagate unchanged.

    Args:
        db: Session the block writes through.

    Yields:
        The same session.

    Raises:
        PersistenceError: If the database rejected a statement or the commit.
    """
    with _WRITE_LOCK:
        try:
            yield db
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Transaction rolled back: %s", e)
            raise PersistenceError(str(e)) from e
        except Exception:
            db.rollback()
            raise
