# =======================================================================================
# campus_access/database.py - Database Management
# =======================================================================================
from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.pool import QueuePool
from contextlib import contextmanager
from typing import Optional
from .config import config
from .logging_config import get_logger
from .models.tables import metadata
from .utils.exceptions import StorageUnavailableError

logger = get_logger(__name__)

# MySQL: lock wait timeout, deadlock
LOCK_CONFLICT_CODES = {1205, 1213}


def is_lock_conflict(exc: DBAPIError) -> bool:
    """True when the driver error means "someone else holds the row", not "DB is down"."""
    orig = getattr(exc, "orig", None)
    args = getattr(orig, "args", ())
    if args and args[0] in LOCK_CONFLICT_CODES:
        return True
    return "database is locked" in str(orig).lower()


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class DatabaseManager:
    """Manages database connections and transactions."""

    def __init__(self, url: Optional[str] = None):
        self.url = url or config.DB_URL
        backend = make_url(self.url).get_backend_name()

        if backend == "sqlite":
            # used for tests and single-box installs; no READ COMMITTED level there
            self.engine: Engine = create_engine(
                self.url,
                connect_args={"check_same_thread": False, "timeout": 30},
                future=True,
            )
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)
        else:
            self.engine = create_engine(
                self.url,
                poolclass=QueuePool,
                pool_size=config.DB_POOL_SIZE,
                max_overflow=config.DB_MAX_OVERFLOW,
                pool_pre_ping=True,
                isolation_level="READ COMMITTED",
                future=True,
            )

    @contextmanager
    def get_connection(self):
        """Get a transactional connection; commits on success, rolls back on error."""
        try:
            with self.engine.begin() as conn:
                yield conn
        except (OperationalError, InterfaceError) as exc:
            if is_lock_conflict(exc):
                raise
            logger.error("Database unavailable: %s", exc.orig)
            raise StorageUnavailableError("Database unavailable", error=str(exc.orig)) from exc

    def fetch_one(self, query: str, params: dict = None):
        """Fetch a single result."""
        with self.get_connection() as conn:
            result = conn.execute(text(query), params or {})
            return result.mappings().first()

    def create_schema(self) -> None:
        """Create missing tables. First boot and tests only; not a migration tool."""
        metadata.create_all(self.engine)

    def dispose(self) -> None:
        self.engine.dispose()


# Global database instance
db_manager = DatabaseManager()
