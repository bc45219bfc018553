"""
DeployWatch - Version History Ledger
Append-only record of version transitions per API per environment.

Entries are never updated or deleted. "Latest version per environment"
is derived from the entries rather than kept as a separate flag.
"""
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable, Dict, Iterator, List, Optional

from deploywatch.core.models import ChangeStats, ChangeType, VersionHistoryEntry
from deploywatch.storage.db import Database, from_db_time, to_db_time
from deploywatch.utils.logger import get_logger

logger = get_logger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _row_to_entry(row: sqlite3.Row, is_active: bool = True) -> VersionHistoryEntry:
    try:
        change_type = ChangeType(row["version_change_type"])
    except ValueError:
        change_type = ChangeType.UNKNOWN
    return VersionHistoryEntry(
        id=row["id"],
        api_id=row["api_id"],
        version=row["version"],
        environment=row["environment"],
        region=row["region"],
        status=row["status"],
        response_time_ms=row["response_time"],
        detected_at=from_db_time(row["detected_at"]),
        service_name=row["service_name"],
        url=row["url"],
        project_id=row["project_id"],
        previous_version=row["previous_version"],
        version_change_type=change_type,
        is_active=is_active,
    )


class HistoryLedger:
    """
    Thread-safe ledger of VersionHistoryEntry rows.

    Writers for the same apiId are serialized through `api_lock`; writers
    for different APIs never wait on each other.
    """

    def __init__(self, db: Database, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.clock = clock
        self._locks_guard = threading.Lock()
        self._api_locks: Dict[int, threading.Lock] = {}

    @contextmanager
    def api_lock(self, api_id: int) -> Iterator[None]:
        """Critical section for the read-current / append / update sequence of one API"""
        with self._locks_guard:
            lock = self._api_locks.get(api_id)
            if lock is None:
                lock = self._api_locks[api_id] = threading.Lock()
        with lock:
            yield

    def append(
        self,
        api_id: int,
        version: str,
        environment: str,
        previous_version: Optional[str],
        change_type: ChangeType,
        region: Optional[str] = None,
        status: Optional[str] = None,
        response_time_ms: Optional[int] = None,
        service_name: Optional[str] = None,
        url: Optional[str] = None,
        project_id: Optional[int] = None,
    ) -> VersionHistoryEntry:
        """Insert one immutable entry; raises StorageFailure on write errors"""
        detected_at = self.clock()
        with self.db.connect("append_history") as conn:
            cursor = conn.execute(
                """
                INSERT INTO api_version_history (
                    api_id, version, environment, region, status, response_time,
                    detected_at, service_name, url, project_id,
                    previous_version, version_change_type
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    api_id, version, environment, region, status, response_time_ms,
                    to_db_time(detected_at), service_name, url, project_id,
                    previous_version, ChangeType(change_type).value,
                ),
            )
            entry_id = cursor.lastrowid

        return VersionHistoryEntry(
            id=entry_id,
            api_id=api_id,
            version=version,
            environment=environment,
            region=region,
            status=status,
            response_time_ms=response_time_ms,
            detected_at=detected_at,
            service_name=service_name,
            url=url,
            project_id=project_id,
            previous_version=previous_version,
            version_change_type=ChangeType(change_type),
        )

    def get_history(self, api_id: int, environment: Optional[str] = None) -> List[VersionHistoryEntry]:
        """
        Entries for an API, most recent first, optionally for one environment.
        
        Only the newest entry of each environment is marked active.
        """
        query = "SELECT * FROM api_version_history WHERE api_id = ?"
        params: list = [api_id]

        if environment:
            query += " AND environment = ?"
            params.append(environment)

        query += " ORDER BY detected_at DESC, id DESC"

        with self.db.connect("get_history") as conn:
            rows = conn.execute(query, params).fetchall()
        seen = set()
        entries = []
        for row in rows:
            entries.append(_row_to_entry(row, is_active=row["environment"] not in seen))
            seen.add(row["environment"])
        return entries

    def latest_entry(self, api_id: int) -> Optional[VersionHistoryEntry]:
        with self.db.connect("latest_entry") as conn:
            row = conn.execute(
                """
                SELECT * FROM api_version_history WHERE api_id = ?
                ORDER BY detected_at DESC, id DESC LIMIT 1
                """,
                (api_id,),
            ).fetchone()
        return _row_to_entry(row) if row else None

    def latest_versions_by_environment(self, api_id: int) -> Dict[str, str]:
        """One version per environment ever seen for the API: the most recently detected"""
        with self.db.connect("latest_versions") as conn:
            rows = conn.execute(
                """
                SELECT environment, version FROM api_version_history
                WHERE api_id = ?
                ORDER BY detected_at ASC, id ASC
                """,
                (api_id,),
            ).fetchall()

        latest: Dict[str, str] = {}
        for row in rows:
            latest[row["environment"]] = row["version"]
        return latest

    def change_stats(self, api_id: int, environment: Optional[str] = None) -> ChangeStats:
        """Counts by change type plus first/last detection time; zeroed when empty"""
        query = """
            SELECT
                COUNT(*) AS total_changes,
                COUNT(CASE WHEN version_change_type = 'major' THEN 1 END) AS major_changes,
                COUNT(CASE WHEN version_change_type = 'minor' THEN 1 END) AS minor_changes,
                COUNT(CASE WHEN version_change_type = 'patch' THEN 1 END) AS patch_changes,
                MIN(detected_at) AS first_change,
                MAX(detected_at) AS last_change
            FROM api_version_history
            WHERE api_id = ?
        """
        params: list = [api_id]
        if environment:
            query += " AND environment = ?"
            params.append(environment)

        with self.db.connect("change_stats") as conn:
            row = conn.execute(query, params).fetchone()

        if row is None or not row["total_changes"]:
            return ChangeStats()

        return ChangeStats(
            total_changes=row["total_changes"],
            major_changes=row["major_changes"],
            minor_changes=row["minor_changes"],
            patch_changes=row["patch_changes"],
            first_change_at=from_db_time(row["first_change"]),
            last_change_at=from_db_time(row["last_change"]),
        )
