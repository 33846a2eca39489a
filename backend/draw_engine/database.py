import logging
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Iterator

from dotenv import load_dotenv
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

load_dotenv()

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./draw_engine.db")
_echo = os.getenv("SQL_ECHO", "false").lower() in ("true", "1", "yes")


def enable_sqlite_foreign_keys(target: Engine) -> Engine:
    """SQLite ignores FOREIGN KEY clauses unless each connection opts in."""

    @event.listens_for(target, "connect")
    def _set_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return target


def build_engine(url: str) -> Engine:
    """Engine for `url`; SQLite files get their directory created and FK checks turned on."""
    if not url.startswith("sqlite"):
        return create_engine(url, echo=_echo)

    if ":memory:" not in url:
        Path(url.replace("sqlite:///", "", 1)).parent.mkdir(parents=True, exist_ok=True)
    return enable_sqlite_foreign_keys(
        create_engine(url, echo=_echo, connect_args={"check_same_thread": False})
    )


engine: Engine = build_engine(DATABASE_URL)


def get_session() -> Generator[Session, None, None]:
    """Get database session"""
    with Session(engine) as session:
        yield session


@contextmanager
def atomic(session: Session) -> Iterator[Session]:
    """
    Commit everything staged inside the block as one transaction.

    Any exception rolls the session back and propagates, so a multi-row write
    (groups, registrations and the draw flag) either lands whole or not at all.
    """
    try:
        yield session
        session.commit()
    except Exception:
        logger.debug("Rolling back transaction", exc_info=True)
        session.rollback()
        raise


def init_db() -> None:
    """Initialize database - create all tables"""
    # Import all models to ensure they're registered with SQLModel metadata
    from draw_engine.models.group import GroupMatch, TournamentGroup  # noqa: F401
    from draw_engine.models.registration import Registration  # noqa: F401
    from draw_engine.models.tournament import Tournament  # noqa: F401

    SQLModel.metadata.create_all(engine)
