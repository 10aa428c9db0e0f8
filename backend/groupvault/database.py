"""Engine, session factory and the unit-of-work decorator."""
import functools
import logging
from typing import Callable, TypeVar

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from tenacity import Retrying, retry_if_exception, stop_after_attempt, wait_exponential

from groupvault.config import settings
from groupvault.errors import TransientError

logger = logging.getLogger(__name__)

Base = declarative_base()

T = TypeVar("T")

# SQLSTATE serialization_failure / deadlock_detected
_RETRYABLE_PGCODES = {"40001", "40P01"}


def create_db_engine(url: str) -> Engine:
    """Create an engine; SQLite connections get write-serialized transactions."""
    if not url.startswith("sqlite"):
        return create_engine(
            url,
            isolation_level=settings.DB_ISOLATION_LEVEL,
            pool_pre_ping=True,
        )

    engine = create_engine(url, connect_args={"check_same_thread": False, "timeout": 30})

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, connection_record):
        # Hand transaction control to the "begin" hook below
        dbapi_conn.isolation_level = None
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        # Take the write lock up front so check-then-insert sequences serialize
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


engine = create_db_engine(settings.DATABASE_URL)
# Committed rows stay readable without a refresh, which would reopen a transaction
SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def get_db():
    """FastAPI dependency yielding one session per request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def is_serialization_failure(exc: BaseException) -> bool:
    """True for conflicts that a fresh attempt of the same transaction may clear."""
    if not isinstance(exc, DBAPIError):
        return False
    pgcode = getattr(exc.orig, "pgcode", None)
    if pgcode in _RETRYABLE_PGCODES:
        return True
    return isinstance(exc, OperationalError) and "database is locked" in str(exc.orig)


def transactional(fn: Callable[..., T]) -> Callable[..., T]:
    """Run ``fn(db, ...)`` as a single unit of work.

    Commits on success and rolls back on any exception, cancellation
    included. Serialization failures re-run the whole function up to
    ``TX_RETRY_ATTEMPTS`` times before surfacing as ``TransientError``.
    """

    @functools.wraps(fn)
    def wrapper(db: Session, *args, **kwargs) -> T:
        retrying = Retrying(
            retry=retry_if_exception(is_serialization_failure),
            stop=stop_after_attempt(settings.TX_RETRY_ATTEMPTS),
            wait=wait_exponential(multiplier=0.05, max=1),
            reraise=True,
        )
        try:
            for attempt in retrying:
                with attempt:
                    try:
                        result = fn(db, *args, **kwargs)
                        db.commit()
                    except BaseException:
                        db.rollback()
                        raise
                    if attempt.retry_state.attempt_number > 1:
                        logger.info(
                            "%s committed after %d attempts",
                            fn.__name__, attempt.retry_state.attempt_number,
                        )
        except DBAPIError as exc:
            if is_serialization_failure(exc):
                logger.warning("%s gave up after serialization conflicts", fn.__name__)
                raise TransientError("Concurrent update conflict; please retry") from exc
            raise
        return result

    return wrapper
