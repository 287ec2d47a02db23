import logging
from contextlib import contextmanager
from typing import Any, Callable, Iterator, List, Mapping, Optional, TypeVar

from sqlalchemy import create_engine, event
from sqlalchemy.engine import CursorResult, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from src.config import settings
from src.db.models import Base

logger = logging.getLogger(__name__)

T = TypeVar("T")

_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


# PUBLIC_INTERFACE
class QueryError(Exception):
    """Raised when the store rejects a statement or the connection fails.

    Wraps constraint violations, dropped connections and pool timeouts alike;
    the original SQLAlchemy exception is kept as ``__cause__``.
    """


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


# PUBLIC_INTERFACE
def get_engine() -> Engine:
    """Return the process-wide engine (connection pool), creating it on first use."""
    global _engine
    if _engine is None:
        url = settings.database_url
        if not url:
            raise ValueError("DATABASE_URL environment variable must be set in your .env file (see .env.example)")
        kwargs = {"echo": settings.db_echo}
        if url.startswith("sqlite"):
            # FastAPI runs sync handlers in a thread pool
            kwargs["connect_args"] = {"check_same_thread": False}
        else:
            kwargs["pool_size"] = settings.db_pool_size
            kwargs["pool_timeout"] = settings.db_pool_timeout
            kwargs["pool_pre_ping"] = True
        _engine = create_engine(url, **kwargs)
        if url.startswith("sqlite"):
            event.listen(_engine, "connect", _enable_sqlite_foreign_keys)
        logger.info("Created database engine for %s", _engine.url.render_as_string(hide_password=True))
    return _engine


# PUBLIC_INTERFACE
def get_session_factory() -> sessionmaker:
    """Return the sessionmaker bound to the shared engine."""
    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(
            bind=get_engine(), autoflush=False, expire_on_commit=False
        )
    return _session_factory


# PUBLIC_INTERFACE
def init_db() -> None:
    """Create the users/notes tables if they do not exist."""
    Base.metadata.create_all(get_engine())


# PUBLIC_INTERFACE
def dispose_engine() -> None:
    """Drain and close the connection pool. The next call to get_engine() builds a new one."""
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
        logger.info("Database engine disposed")
    _engine = None
    _session_factory = None


# PUBLIC_INTERFACE
class DatabaseTransaction:
    """
    One transactional connection: acquire, begin, execute, commit or roll back, release.

    Only one transaction may be open at a time per instance. Prefer the
    ``transaction()`` helper, which guarantees release on every exit path:

        with transaction() as tx:
            rows = tx.query(select(Note).where(Note.id == note_id))
    """

    def __init__(self, session_factory: Optional[Callable[[], Session]] = None):
        self._session_factory = session_factory
        self._session: Optional[Session] = None
        self._open = False
        self._committed = False

    @property
    def session(self) -> Session:
        if self._session is None:
            raise QueryError("No client: call create_client() first")
        return self._session

    def create_client(self) -> None:
        """Check a connection session out of the pool."""
        factory = self._session_factory or get_session_factory()
        self._session = factory()

    def open_transaction(self) -> None:
        """Begin an atomic unit. Nested transactions are not supported."""
        if self._open:
            raise QueryError("A transaction is already open on this client")
        try:
            self.session.begin()
        except SQLAlchemyError as exc:
            raise QueryError(str(exc)) from exc
        self._open = True
        self._committed = False

    def query(self, statement: Any, values: Optional[Mapping[str, Any]] = None) -> List[Any]:
        """Execute a parameterized statement and return its rows (empty for statements without rows)."""
        if not self._open:
            raise QueryError("No open transaction: call open_transaction() first")
        try:
            result = self.session.execute(statement, values or {})
            if isinstance(result, CursorResult) and not result.returns_rows:
                return []
            return list(result.all())
        except SQLAlchemyError as exc:
            logger.debug("Statement failed: %s", exc)
            raise QueryError(str(exc)) from exc

    def query_scalars(self, statement: Any, values: Optional[Mapping[str, Any]] = None) -> List[Any]:
        """Like query(), but return only the first column of each row."""
        return [row[0] for row in self.query(statement, values)]

    def commit(self) -> None:
        """Commit every statement issued since open_transaction(), all or nothing."""
        if not self._open:
            raise QueryError("No open transaction to commit")
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            raise QueryError(str(exc)) from exc
        self._committed = True

    def close_transaction(self) -> None:
        """Release the transaction, rolling back if commit() never succeeded."""
        if self._session is None:
            return
        try:
            if self._open and not self._committed:
                self._session.rollback()
                logger.debug("Transaction rolled back")
        finally:
            self._open = False
            self._session.close()
            self._session = None

    def close(self) -> None:
        """Release the underlying pool entirely. Called once at shutdown, not per request."""
        self.close_transaction()
        dispose_engine()


# PUBLIC_INTERFACE
@contextmanager
def transaction(session_factory: Optional[Callable[[], Session]] = None) -> Iterator[DatabaseTransaction]:
    """Scoped bracket: create_client -> open_transaction -> yield -> commit -> close_transaction."""
    tx = DatabaseTransaction(session_factory)
    tx.create_client()
    try:
        tx.open_transaction()
        yield tx
        tx.commit()
    finally:
        tx.close_transaction()


# PUBLIC_INTERFACE
def run_in_transaction(
    unit_of_work: Callable[[DatabaseTransaction], T],
    session_factory: Optional[Callable[[], Session]] = None,
) -> T:
    """Run ``unit_of_work(tx)`` inside one bracket and return its result."""
    with transaction(session_factory) as tx:
        return unit_of_work(tx)
