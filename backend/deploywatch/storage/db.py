"""
DeployWatch - SQLite Storage
Endpoint rows and the append-only version history share one database file.
"""
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional

from deploywatch.config import get_settings
from deploywatch.core.errors import StorageFailure
from deploywatch.utils.logger import get_logger
from deploywatch.utils.metrics import LEDGER_FAILURES

logger = get_logger(__name__)

SCHEMA = """
    CREATE TABLE IF NOT EXISTS apis (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        project_id INTEGER,
        url TEXT NOT NULL,
        environment TEXT NOT NULL,
        region TEXT,
        status TEXT NOT NULL DEFAULT 'unknown',
        response_time INTEGER,
        current_version TEXT,
        last_checked TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT
    );

    CREATE TABLE IF NOT EXISTS api_version_history (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        api_id INTEGER NOT NULL,
        version TEXT NOT NULL,
        environment TEXT NOT NULL,
        region TEXT,
        status TEXT,
        response_time INTEGER,
        detected_at TEXT NOT NULL,
        service_name TEXT,
        url TEXT,
        project_id INTEGER,
        previous_version TEXT,
        version_change_type TEXT NOT NULL
    );

    CREATE INDEX IF NOT EXISTS idx_history_api_env
        ON api_version_history(api_id, environment, detected_at);
"""


def to_db_time(ts: Optional[datetime]) -> Optional[str]:
    return ts.isoformat(timespec="microseconds") if ts else None


def from_db_time(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class Database:
    """
    Thin connection factory. Each operation opens its own connection so
    worker threads never share one.
    """
    
    def __init__(self, path: Optional[str] = None):
        settings = get_settings()
        self.path = Path(path or settings.database_path)
        self.busy_timeout = settings.sqlite_busy_timeout_seconds
        self._initialized = False
    
    def initialize(self) -> None:
        """Create the file and tables if needed"""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(self.path), timeout=self.busy_timeout)
            try:
                conn.executescript(SCHEMA)
                conn.commit()
            finally:
                conn.close()
        except (sqlite3.Error, OSError) as e:
            LEDGER_FAILURES.labels(operation="initialize").inc()
            logger.error(f"Failed to initialize database {self.path}: {e}")
            raise StorageFailure(f"Cannot initialize database: {e}") from e
        self._initialized = True
        logger.info(f"Database ready: {self.path}")
    
    @contextmanager
    def connect(self, operation: str = "query") -> Iterator[sqlite3.Connection]:
        """
        Yield a connection inside a transaction.
        
        Commits on success, rolls back on error. sqlite errors surface as
        StorageFailure tagged with `operation`.
        """
        if not self._initialized:
            self.initialize()
        
        try:
            conn = sqlite3.connect(str(self.path), timeout=self.busy_timeout)
        except sqlite3.Error as e:
            LEDGER_FAILURES.labels(operation=operation).inc()
            logger.error(f"Storage failure ({operation}): {e}")
            raise StorageFailure(f"{operation} failed: {e}") from e
        
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            LEDGER_FAILURES.labels(operation=operation).inc()
            logger.error(f"Storage failure ({operation}): {e}")
            raise StorageFailure(f"{operation} failed: {e}") from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
