"""
DeployWatch - Endpoint Registry
Rows are created and deleted by the external CRUD layer; the monitoring
core only reads them and refreshes status, latency and current version.
"""
import sqlite3
from datetime import datetime, timezone
from typing import Callable, List, Optional

from deploywatch.config import get_settings
from deploywatch.core.errors import EndpointNotFound, InputError
from deploywatch.core.models import EndpointStatus, MonitoredEndpoint
from deploywatch.storage.db import Database, from_db_time, to_db_time
from deploywatch.utils.logger import get_logger

logger = get_logger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _row_to_endpoint(row: sqlite3.Row) -> MonitoredEndpoint:
    try:
        status = EndpointStatus(row["status"])
    except ValueError:
        status = EndpointStatus.UNKNOWN
    return MonitoredEndpoint(
        api_id=row["id"],
        url=row["url"],
        environment=row["environment"],
        region=row["region"],
        project_id=row["project_id"],
        status=status,
        response_time_ms=row["response_time"],
        current_version=row["current_version"],
        last_checked=from_db_time(row["last_checked"]),
    )


class EndpointStore:
    """SQLite-backed view of the monitored endpoints"""
    
    def __init__(self, db: Database, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.clock = clock
    
    def register(
        self,
        url: str,
        environment: str,
        region: Optional[str] = None,
        project_id: Optional[int] = None,
    ) -> MonitoredEndpoint:
        """Insert an endpoint (used by the CRUD layer and by tests)"""
        if not url or not url.strip():
            raise InputError("API url is required")
        env = (environment or "dev").strip()
        region = (region or get_settings().default_region).strip()
        
        with self.db.connect("register_endpoint") as conn:
            cursor = conn.execute(
                """
                INSERT INTO apis (project_id, url, environment, region, status, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (project_id, url.strip(), env, region, EndpointStatus.UNKNOWN.value,
                 to_db_time(self.clock())),
            )
            api_id = cursor.lastrowid
        
        logger.info(f"Registered API {api_id}: {url.strip()} ({env}/{region})")
        return self.require(api_id)
    
    def get(self, api_id: int) -> Optional[MonitoredEndpoint]:
        with self.db.connect("get_endpoint") as conn:
            row = conn.execute("SELECT * FROM apis WHERE id = ?", (api_id,)).fetchone()
        return _row_to_endpoint(row) if row else None
    
    def require(self, api_id: int) -> MonitoredEndpoint:
        endpoint = self.get(api_id)
        if endpoint is None:
            raise EndpointNotFound(api_id)
        return endpoint
    
    def list_all(self) -> List[MonitoredEndpoint]:
        with self.db.connect("list_endpoints") as conn:
            rows = conn.execute("SELECT * FROM apis ORDER BY id").fetchall()
        return [_row_to_endpoint(r) for r in rows]
    
    def update_status(
        self,
        api_id: int,
        status: Optional[EndpointStatus],
        response_time_ms: Optional[int],
    ) -> bool:
        """
        Heartbeat refresh; returns False when the API is unknown.
        
        A None status or response time keeps the stored value.
        """
        status_value = EndpointStatus(status).value if status is not None else None
        with self.db.connect("update_status") as conn:
            cursor = conn.execute(
                """
                UPDATE apis
                SET status = COALESCE(?, status),
                    response_time = COALESCE(?, response_time),
                    last_checked = ?
                WHERE id = ?
                """,
                (status_value, response_time_ms, to_db_time(self.clock()), api_id),
            )
        return cursor.rowcount > 0
    
    def update_current_version(self, api_id: int, version: str) -> bool:
        with self.db.connect("update_current_version") as conn:
            cursor = conn.execute(
                "UPDATE apis SET current_version = ?, updated_at = ? WHERE id = ?",
                (version, to_db_time(self.clock()), api_id),
            )
        return cursor.rowcount > 0
