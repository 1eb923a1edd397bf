"""Report storage supporting in-memory and local SQLite backends."""

import json
import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from siteaudit.config import settings
from siteaudit.models import AuditReport

logger = logging.getLogger(__name__)

CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS audit_reports (
    id TEXT PRIMARY KEY,
    url TEXT NOT NULL,
    overall_score REAL,
    analysis_depth TEXT,
    fallback_used INTEGER NOT NULL DEFAULT 0,
    created_at TIMESTAMP NOT NULL,
    payload TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_audit_reports_url ON audit_reports(url);
"""


class ReportStore(ABC):
    """Interface for persisting audit reports."""

    @abstractmethod
    def put(self, report: AuditReport) -> None:
        """Insert or replace a report.

        Args:
            report: Report to store, keyed by its id
        """
        pass

    @abstractmethod
    def get(self, report_id: str) -> Optional[AuditReport]:
        """Fetch a report by id."""
        pass

    @abstractmethod
    def list(self, url: Optional[str] = None, limit: int = 50) -> List[AuditReport]:
        """List reports, newest first.

        Args:
            url: Only reports for this URL
            limit: Maximum number of reports

        Returns:
            List of reports ordered by created_at descending
        """
        pass

    @abstractmethod
    def delete(self, report_id: str) -> bool:
        """Delete a report. Returns True if it existed."""
        pass

    def close(self) -> None:
        """Release backend resources."""


class InMemoryReportStore(ReportStore):
    """Process-local report storage."""

    def __init__(self):
        self._reports: Dict[str, AuditReport] = {}
        self._lock = threading.Lock()

    def put(self, report: AuditReport) -> None:
        with self._lock:
            self._reports[report.id] = report
        logger.debug(f"Stored report {report.id} for {report.url}")

    def get(self, report_id: str) -> Optional[AuditReport]:
        return self._reports.get(report_id)

    def list(self, url: Optional[str] = None, limit: int = 50) -> List[AuditReport]:
        with self._lock:
            reports = [r for r in self._reports.values() if url is None or r.url == url]
        reports.sort(key=lambda r: r.created_at, reverse=True)
        return reports[:limit]

    def delete(self, report_id: str) -> bool:
        with self._lock:
            return self._reports.pop(report_id, None) is not None


class SqliteReportStore(ReportStore):
    """SQLite report storage; the full report is kept as a JSON payload."""

    def __init__(self, db_path: Optional[str] = None):
        """Initialize local SQLite storage.

        Args:
            db_path: Database file. Defaults to settings.REPORT_DB_PATH.
        """
        self.db_path = db_path or settings.REPORT_DB_PATH
        self._lock = threading.Lock()
        self.conn: Optional[sqlite3.Connection] = None
        self.connect()
        self.create_schema()

    def connect(self) -> None:
        """Establish SQLite connection."""
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        logger.debug(f"Connected to report database: {self.db_path}")

    def close(self) -> None:
        """Close SQLite connection."""
        if self.conn:
            self.conn.close()
            self.conn = None
            logger.debug("Closed report database connection")

    def create_schema(self) -> None:
        """Create the reports table if it doesn't exist."""
        with self.conn:
            self.conn.executescript(CREATE_TABLE_SQL)

    def put(self, report: AuditReport) -> None:
        with self._lock, self.conn:
            self.conn.execute(
                """INSERT OR REPLACE INTO audit_reports
                   (id, url, overall_score, analysis_depth, fallback_used, created_at, payload)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (
                    report.id,
                    report.url,
                    report.overall_score,
                    report.analysis_depth.value,
                    int(report.fallback_used),
                    report.created_at.isoformat(),
                    json.dumps(report.to_dict()),
                )
            )
        logger.debug(f"Saved report {report.id} for {report.url}")

    def get(self, report_id: str) -> Optional[AuditReport]:
        with self._lock:
            row = self.conn.execute(
                "SELECT payload FROM audit_reports WHERE id = ?", (report_id,)
            ).fetchone()
        return AuditReport.from_dict(json.loads(row['payload'])) if row else None

    def list(self, url: Optional[str] = None, limit: int = 50) -> List[AuditReport]:
        if url is None:
            sql = "SELECT payload FROM audit_reports ORDER BY created_at DESC LIMIT ?"
            params = (limit,)
        else:
            sql = "SELECT payload FROM audit_reports WHERE url = ? ORDER BY created_at DESC LIMIT ?"
            params = (url, limit)
        with self._lock:
            rows = self.conn.execute(sql, params).fetchall()
        return [AuditReport.from_dict(json.loads(row['payload'])) for row in rows]

    def delete(self, report_id: str) -> bool:
        with self._lock, self.conn:
            cursor = self.conn.execute("DELETE FROM audit_reports WHERE id = ?", (report_id,))
        return cursor.rowcount > 0


def get_report_store(backend: Optional[str] = None, **kwargs) -> ReportStore:
    """Factory function to create the configured report store.

    Args:
        backend: 'memory' or 'sqlite'. Defaults to settings.REPORT_BACKEND.
        **kwargs: Additional arguments passed to the store constructor.

    Returns:
        A ReportStore instance

    Raises:
        ValueError: If an unknown backend is specified.
    """
    backend = backend or settings.REPORT_BACKEND

    if backend == "memory":
        logger.info("Using in-memory report store")
        return InMemoryReportStore(**kwargs)
    elif backend == "sqlite":
        logger.info("Using SQLite report store")
        return SqliteReportStore(**kwargs)
    else:
        raise ValueError(
            f"Unknown report backend: '{backend}'. "
            "Supported backends: 'memory', 'sqlite'"
        )
