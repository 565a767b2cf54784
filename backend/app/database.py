from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker
from app.core.config import settings
import logging
import time

logger = logging.getLogger(__name__)

logger.info("QUILLFEED DATABASE_URL = %s", settings.get_masked_database_url())

_connect_args = {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}

# Create engine with connection pooling and pre-ping to verify connections
engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
    echo=False,  # Keep echo off - we'll log slow queries separately
    connect_args=_connect_args,
)

SLOW_QUERY_THRESHOLD_MS = 200.0


def install_slow_query_logging(bind, threshold_ms: float = SLOW_QUERY_THRESHOLD_MS) -> None:
    """Log any statement on `bind` that takes at least `threshold_ms`."""

    @event.listens_for(bind, "before_cursor_execute")
    def receive_before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        context._query_start_time = time.perf_counter()

    @event.listens_for(bind, "after_cursor_execute")
    def receive_after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        if hasattr(context, "_query_start_time"):
            elapsed_ms = (time.perf_counter() - context._query_start_time) * 1000
            if elapsed_ms >= threshold_ms:
                # First line of the statement is enough to identify it
                statement_first_line = statement.split("\n")[0].strip()[:100]
                logger.warning(
                    f"SLOW_QUERY: {elapsed_ms:.2f}ms - {statement_first_line}"
                )


if settings.DEBUG:
    install_slow_query_logging(engine)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """Dependency for getting database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None) -> None:
    """
    Dev convenience: ensure all tables exist.

    WARNING: create_all() will NOT add missing columns to existing tables.
    It only creates tables that don't exist.

    This imports all models so that Base.metadata includes all table definitions.
    """
    from app import models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
