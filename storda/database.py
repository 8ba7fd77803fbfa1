"""SQLite engine, schema creation and request sessions."""

import logging

from sqlalchemy import event
from sqlmodel import SQLModel, Session, create_engine

from storda.config import settings

# Registers every table on SQLModel.metadata
import storda.models  # noqa: F401

logger = logging.getLogger(__name__)

engine = create_engine(
    f"sqlite:///{settings.db_path}",
    echo=settings.debug,
    connect_args={"check_same_thread": False},
)


@event.listens_for(engine, "connect")
def _sqlite_connection_pragmas(dbapi_connection, connection_record):
    # Both settings are per connection in SQLite, so every pooled
    # connection needs them, not just the one init_db happens to use.
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.close()


def init_db() -> None:
    """Create missing tables and switch the file to WAL.

    The schema carries the registry's hard guarantees: the unique IMEI
    index and the partial unique index allowing one ``awaiting_recipient``
    transfer per device. Services rely on them to turn concurrent writes
    into IntegrityError instead of duplicates.
    """
    SQLModel.metadata.create_all(engine)

    # WAL is stored in the database file; the expiry sweep can read while
    # a request holds the write lock
    with engine.connect() as conn:
        mode = conn.exec_driver_sql("PRAGMA journal_mode=WAL").scalar()
    logger.info("Database ready at %s (journal=%s)", settings.db_path, mode)


def get_session():
    """FastAPI dependency: one session per request."""
    with Session(engine) as session:
        yield session
