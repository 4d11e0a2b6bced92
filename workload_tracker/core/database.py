"""
Database access over an embedded SQLite file or a networked MySQL server.

One Database instance is created per process (FastAPI lifespan) and injected
where needed. It selects the backend from settings, retries connection
attempts with exponential backoff, falls back from MySQL to SQLite when
allowed, creates the schema idempotently and exposes a small query surface:
execute / query / get_one / transaction.
"""

import logging
import time
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, TypeVar

from sqlalchemy import create_engine, event, text
from sqlalchemy import exc as sa_exc
from sqlalchemy.engine import URL, Connection, CursorResult, Engine
from sqlalchemy.pool import StaticPool
from sqlalchemy.sql.base import Executable
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from workload_tracker.core.config import Settings
from workload_tracker.core.errors import (
    AppError,
    ConflictError,
    DatabaseConnectionError,
    ValidationFailedError,
)
from workload_tracker.models import Base

logger = logging.getLogger(__name__)

BACKEND_SQLITE = "sqlite"
BACKEND_MYSQL = "mysql"

STATE_UNINITIALIZED = "uninitialized"
STATE_CONNECTING = "connecting"
STATE_READY = "ready"
STATE_FAILED = "failed"
STATE_CLOSED = "closed"

# verify_connection backoff: 1s, 2s, 4s, then capped at 5s.
VERIFY_BASE_DELAY_SEC = 1.0
VERIFY_MAX_DELAY_SEC = 5.0

# Attempts to check a connection out of the pool before surfacing DatabaseConnectionError.
ACQUIRE_ATTEMPTS = 3
ACQUIRE_BASE_DELAY_SEC = 0.5
ACQUIRE_MAX_DELAY_SEC = 2.0

MEMORY_PATH = ":memory:"

T = TypeVar("T")
Statement = str | Executable
Params = Mapping[str, Any] | None
EngineFactory = Callable[[str, Settings], Engine]


@dataclass(frozen=True)
class ExecuteResult:
    """Outcome of a write or DDL statement."""

    rowcount: int
    lastrowid: int | None = None


def _log_retry(retry_state: RetryCallState) -> None:
    """Log each retry with attempt number, wait time and last error."""
    fn_name = getattr(retry_state.fn, "__name__", "database operation")
    wait_time = retry_state.next_action.sleep if retry_state.next_action else 0
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "Database attempt %s failed; retrying in %.2fs",
        retry_state.attempt_number,
        wait_time,
        extra={
            "function": fn_name,
            "attempt": retry_state.attempt_number,
            "wait_seconds": round(wait_time, 2),
            "error": str(exc) if exc else None,
        },
    )


def _set_sqlite_pragmas(dbapi_connection: Any, _connection_record: Any) -> None:
    # Foreign keys are off by default in SQLite; ON DELETE CASCADE depends on them.
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA busy_timeout=5000")
    cursor.close()


def _set_sqlite_file_pragmas(dbapi_connection: Any, _connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.close()


def _sqlite_engine(settings: Settings) -> Engine:
    path = settings.DB_PATH
    if path == MEMORY_PATH:
        # One shared connection so every session sees the same in-memory database.
        engine = create_engine(
            "sqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=settings.DEBUG,
        )
    else:
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        engine = create_engine(
            URL.create("sqlite", database=path),
            connect_args={
                "timeout": settings.DB_CONNECT_TIMEOUT_SEC,
                "check_same_thread": False,
            },
            pool_pre_ping=True,
            echo=settings.DEBUG,
        )
        event.listen(engine, "connect", _set_sqlite_file_pragmas)
    event.listen(engine, "connect", _set_sqlite_pragmas)
    return engine


def _mysql_engine(settings: Settings) -> Engine:
    url = URL.create(
        "mysql+pymysql",
        username=settings.DB_USER,
        password=settings.DB_PASSWORD.get_secret_value() if settings.DB_PASSWORD else None,
        host=settings.DB_HOST,
        port=settings.DB_PORT,
        database=settings.DB_NAME,
        query={"charset": "utf8mb4"},
    )
    return create_engine(
        url,
        pool_size=settings.DB_CONNECTION_LIMIT,
        max_overflow=0,
        pool_timeout=settings.DB_ACQUIRE_TIMEOUT_SEC,
        pool_pre_ping=True,
        pool_recycle=3600,
        connect_args={"connect_timeout": max(1, int(settings.DB_CONNECT_TIMEOUT_SEC))},
        echo=settings.DEBUG,
    )


def build_engine(backend: str, settings: Settings) -> Engine:
    """Create (but do not connect) the SQLAlchemy engine for a backend kind."""
    if backend == BACKEND_MYSQL:
        return _mysql_engine(settings)
    if backend == BACKEND_SQLITE:
        return _sqlite_engine(settings)
    raise ValueError(f"Unsupported database backend: {backend}")


def _as_executable(statement: Statement) -> Executable:
    return text(statement) if isinstance(statement, str) else statement


def _integrity_error(e: sa_exc.IntegrityError) -> AppError:
    message = str(e.orig or e).lower()
    # SQLite: "FOREIGN KEY constraint failed"; MySQL 1452: "... a foreign key constraint fails"
    if "foreign key" in message:
        return ValidationFailedError("Referenced resource does not exist", cause=e)
    # SQLite: "NOT NULL constraint failed"; MySQL 1048: "Column ... cannot be null"
    if "not null" in message or "cannot be null" in message:
        return ValidationFailedError("Required field cannot be null", cause=e)
    return ConflictError("Resource already exists", cause=e)


@contextmanager
def translate_errors() -> Iterator[None]:
    """Map engine errors onto the application taxonomy; everything else propagates."""
    try:
        yield
    except sa_exc.IntegrityError as e:
        raise _integrity_error(e) from e
    except (sa_exc.DisconnectionError, sa_exc.TimeoutError) as e:
        raise DatabaseConnectionError(str(e), cause=e) from e
    except sa_exc.DBAPIError as e:
        if e.connection_invalidated:
            raise DatabaseConnectionError(str(e.orig or e), cause=e) from e
        raise


class QueryRunner:
    """execute / query / get_one on top of a single _run primitive."""

    def _run(
        self,
        statement: Statement,
        params: Params,
        handler: Callable[[CursorResult], T],
    ) -> T:
        raise NotImplementedError

    def execute(self, statement: Statement, params: Params = None) -> ExecuteResult:
        """Run a write or DDL statement; returns affected rows and the new row id for inserts."""

        def handle(result: CursorResult) -> ExecuteResult:
            lastrowid = None
            if result.is_insert and result.inserted_primary_key:
                lastrowid = result.inserted_primary_key[0]
            elif result.lastrowid:
                lastrowid = result.lastrowid
            return ExecuteResult(rowcount=result.rowcount, lastrowid=lastrowid)

        return self._run(statement, params, handle)

    def query(self, statement: Statement, params: Params = None) -> list[dict[str, Any]]:
        return self._run(
            statement, params, lambda result: [dict(row) for row in result.mappings().all()]
        )

    def get_one(self, statement: Statement, params: Params = None) -> dict[str, Any] | None:
        """First row as a dict, or None when the query matches nothing."""

        def handle(result: CursorResult) -> dict[str, Any] | None:
            row = result.mappings().first()
            return dict(row) if row is not None else None

        return self._run(statement, params, handle)


class TransactionScope(QueryRunner):
    """Query surface bound to the dedicated connection of one transaction."""

    def __init__(self, connection: Connection) -> None:
        self._connection = connection

    def _run(self, statement, params, handler):
        with translate_errors():
            result = self._connection.execute(_as_executable(statement), dict(params) if params else None)
            return handler(result)


class Database(QueryRunner):
    """
    Process-wide database handle over SQLite or MySQL.

    The backend attribute reports the engine actually in use; it changes from
    'mysql' to 'sqlite' when fallback happens. Only initialize(),
    verify_connection() (fallback) and close() replace the engine.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        engine_factory: EngineFactory = build_engine,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.settings = settings
        self.backend = settings.DB_TYPE
        self.state = STATE_UNINITIALIZED
        self._engine: Engine | None = None
        self._engine_factory = engine_factory
        self._sleep = sleep

    @property
    def engine(self) -> Engine | None:
        return self._engine

    @property
    def is_mysql(self) -> bool:
        return self.backend == BACKEND_MYSQL

    @property
    def is_sqlite(self) -> bool:
        return self.backend == BACKEND_SQLITE

    def _can_fall_back(self) -> bool:
        return self.backend == BACKEND_MYSQL and self.settings.DB_FALLBACK_TO_SQLITE

    def initialize(self) -> None:
        """
        Connect to the configured backend, create tables and run the integrity check.

        MySQL failures (missing settings, unreachable server after retries)
        fall back to SQLite when DB_FALLBACK_TO_SQLITE is set. Raises
        DatabaseConnectionError only when no backend could be initialized.
        """
        self.state = STATE_CONNECTING
        logger.info("Initializing %s database", self.backend)
        try:
            self._open(self.backend)
        except DatabaseConnectionError as e:
            logger.error("Failed to initialize %s database: %s", self.backend, e.message)
            if not self._can_fall_back():
                self.state = STATE_FAILED
                raise DatabaseConnectionError(
                    f"Database initialization failed: {e.message}", cause=e
                ) from e
            try:
                self._fall_back_to_sqlite()
            except DatabaseConnectionError as fallback_error:
                self.state = STATE_FAILED
                logger.error("SQLite fallback also failed: %s", fallback_error.message)
                raise DatabaseConnectionError(
                    f"Database initialization failed: {e.message}", cause=fallback_error
                ) from fallback_error
        self.state = STATE_READY
        logger.info("%s database initialized", self.backend)

    def _open(self, backend: str) -> None:
        if backend == BACKEND_MYSQL:
            missing = self.settings.missing_mysql_settings()
            if missing:
                raise DatabaseConnectionError(
                    f"Missing required MySQL settings: {', '.join(missing)}"
                )
            logger.info(
                "Using MySQL database %s at %s:%s",
                self.settings.DB_NAME,
                self.settings.DB_HOST,
                self.settings.DB_PORT,
            )
        else:
            logger.info("Using SQLite database at %s", self.settings.DB_PATH)

        try:
            engine = self._engine_factory(backend, self.settings)
        except (ImportError, sa_exc.ArgumentError, OSError) as e:
            raise DatabaseConnectionError(
                f"Could not create {backend} engine: {e}", cause=e
            ) from e

        try:
            self._connect_with_retry(engine)
            self._create_schema(engine)
            self._run_integrity_check(engine, backend)
        except Exception:
            engine.dispose()
            raise
        self._engine = engine
        self.backend = backend

    def _fall_back_to_sqlite(self) -> None:
        logger.warning("Falling back from MySQL to SQLite (%s)", self.settings.DB_PATH)
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
        self._open(BACKEND_SQLITE)
        self.state = STATE_READY
        logger.info("Fallback to SQLite successful")

    def _connect_with_retry(self, engine: Engine) -> None:
        retrying = Retrying(
            stop=stop_after_attempt(self.settings.DB_MAX_RETRIES),
            wait=wait_exponential(
                multiplier=self.settings.DB_RETRY_DELAY_SEC,
                max=self.settings.DB_RETRY_MAX_DELAY_SEC,
            ),
            retry=retry_if_exception_type(DatabaseConnectionError),
            before_sleep=_log_retry,
            sleep=self._sleep,
            reraise=True,
        )
        retrying(self._ping, engine)

    @staticmethod
    def _ping(engine: Engine) -> None:
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except sa_exc.SQLAlchemyError as e:
            raise DatabaseConnectionError(str(getattr(e, "orig", None) or e), cause=e) from e

    @staticmethod
    def _create_schema(engine: Engine) -> None:
        # checkfirst makes this CREATE TABLE IF NOT EXISTS for every table.
        try:
            Base.metadata.create_all(engine, checkfirst=True)
        except sa_exc.SQLAlchemyError as e:
            raise DatabaseConnectionError(f"Schema creation failed: {e}", cause=e) from e
        logger.info("Database tables created/verified")

    @staticmethod
    def _run_integrity_check(engine: Engine, backend: str) -> bool:
        """Lightweight structural check; a bad report only warns, an engine error is fatal."""
        try:
            with engine.connect() as conn:
                if backend == BACKEND_SQLITE:
                    report = conn.execute(text("PRAGMA integrity_check")).scalar()
                    violations = conn.execute(text("PRAGMA foreign_key_check")).fetchall()
                    if report == "ok" and violations:
                        report = f"{len(violations)} foreign key violation(s)"
                else:
                    ok = conn.execute(text("SELECT 1")).scalar() == 1
                    report = "ok" if ok else "unexpected result from SELECT 1"
        except sa_exc.SQLAlchemyError as e:
            raise DatabaseConnectionError(f"Integrity check failed: {e}", cause=e) from e
        if report != "ok":
            logger.warning("Database integrity check reported: %s", report)
            return False
        logger.info("Database integrity check passed")
        return True

    def verify_connection(self, max_retries: int = 3) -> bool:
        """
        Round-trip a trivial query, retrying with capped exponential backoff.

        On exhaustion the MySQL -> SQLite fallback is attempted (when enabled);
        otherwise DatabaseConnectionError is raised.
        """
        engine = self._require_engine()
        retrying = Retrying(
            stop=stop_after_attempt(max_retries),
            wait=wait_exponential(multiplier=VERIFY_BASE_DELAY_SEC, max=VERIFY_MAX_DELAY_SEC),
            retry=retry_if_exception_type(DatabaseConnectionError),
            before_sleep=_log_retry,
            sleep=self._sleep,
            reraise=True,
        )
        try:
            retrying(self._ping, engine)
        except DatabaseConnectionError as e:
            if self._can_fall_back():
                try:
                    self._fall_back_to_sqlite()
                    return True
                except DatabaseConnectionError as fallback_error:
                    logger.error("SQLite fallback connection also failed: %s", fallback_error.message)
            raise DatabaseConnectionError(
                f"Database connection verification failed after {max_retries} attempts: {e.message}",
                cause=e,
            ) from e
        logger.debug("Database connection verified (%s)", self.backend)
        return True

    def health_check(self) -> dict[str, Any]:
        """Report connectivity without raising; errors become the unhealthy variant."""
        timestamp = datetime.now(UTC).isoformat()
        try:
            self._ping(self._require_engine())
        except Exception as e:
            return {
                "status": "unhealthy",
                "database": self.backend,
                "connected": False,
                "error": str(e),
                "timestamp": timestamp,
            }
        return {
            "status": "healthy",
            "database": self.backend,
            "connected": True,
            "timestamp": timestamp,
        }

    def _require_engine(self) -> Engine:
        if self._engine is None:
            raise DatabaseConnectionError("Database not initialized")
        return self._engine

    def _acquire(self, engine: Engine) -> Connection:
        """Check a connection out of the pool, retrying pool timeouts and refused connects."""

        def connect() -> Connection:
            try:
                return engine.connect()
            except (sa_exc.TimeoutError, sa_exc.DisconnectionError, sa_exc.OperationalError) as e:
                raise DatabaseConnectionError(str(getattr(e, "orig", None) or e), cause=e) from e

        retrying = Retrying(
            stop=stop_after_attempt(ACQUIRE_ATTEMPTS),
            wait=wait_exponential(multiplier=ACQUIRE_BASE_DELAY_SEC, max=ACQUIRE_MAX_DELAY_SEC),
            retry=retry_if_exception_type(DatabaseConnectionError),
            before_sleep=_log_retry,
            sleep=self._sleep,
            reraise=True,
        )
        return retrying(connect)

    def _run(self, statement, params, handler):
        conn = self._acquire(self._require_engine())
        try:
            with translate_errors():
                with conn.begin():
                    result = conn.execute(
                        _as_executable(statement), dict(params) if params else None
                    )
                    return handler(result)
        finally:
            conn.close()

    def transaction(self, body: Callable[[TransactionScope], T]) -> T:
        """
        Run body(scope) atomically on one dedicated connection.

        Commits when body returns, rolls back and re-raises when it raises, and
        always returns the connection to the pool.
        """
        conn = self._acquire(self._require_engine())
        try:
            trans = conn.begin()
            try:
                result = body(TransactionScope(conn))
            except Exception:
                trans.rollback()
                raise
            with translate_errors():
                trans.commit()
            return result
        finally:
            conn.close()

    def close(self) -> None:
        """Dispose the engine; a second call only logs."""
        if self._engine is None:
            logger.info("Database connection already closed (%s)", self.backend)
            return
        logger.info("Closing %s database connection", self.backend)
        engine, self._engine = self._engine, None
        engine.dispose()
        self.state = STATE_CLOSED
        logger.info("%s database connection closed", self.backend)
