"""
SQLite State Repository

Architectural Intent:
- Persistent storage backend for managed resources using SQLite
- Stores one record per resource address plus an operation history
- Implements StateStorePort for the use cases
- Uses WAL mode for concurrent read/write support

Design Decisions:
- Single database file at configurable path (default: stratus.db)
- Auto-creates tables on first use
- Thread-safe via sqlite3's check_same_thread=False
- Attributes and dependencies stored as JSON text
- Timestamps stored as ISO 8601 strings
"""

from __future__ import annotations
import sqlite3
import json
import logging
from datetime import datetime, UTC
from typing import Optional

from stratus.domain.entities.resource_record import ResourceRecord

logger = logging.getLogger(__name__)


class SQLiteStateRepository:
    """Persistent resource state using SQLite."""

    def __init__(self, db_path: str = "stratus.db"):
        self._db_path = db_path
        self._conn: Optional[sqlite3.Connection] = None

    def connect(self) -> None:
        """Open database connection and create tables."""
        self._conn = sqlite3.connect(
            self._db_path,
            check_same_thread=False,
        )
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.row_factory = sqlite3.Row
        self._create_tables()
        logger.info("SQLite state store connected: %s", self._db_path)

    def close(self) -> None:
        """Close database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> "SQLiteStateRepository":
        self.connect()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _create_tables(self) -> None:
        """Create tables if they don't exist."""
        assert self._conn is not None
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS resources (
                address TEXT PRIMARY KEY,
                type TEXT NOT NULL,
                resource_id TEXT NOT NULL,
                attributes TEXT NOT NULL DEFAULT '{}',
                depends_on TEXT NOT NULL DEFAULT '[]',
                updated_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS operations (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                address TEXT NOT NULL,
                operation TEXT NOT NULL,
                status TEXT NOT NULL,
                executed_at TEXT NOT NULL,
                duration_seconds REAL,
                error TEXT DEFAULT ''
            );

            CREATE INDEX IF NOT EXISTS idx_resources_type ON resources(type);
            CREATE INDEX IF NOT EXISTS idx_operations_address ON operations(address);
        """)

    @staticmethod
    def _to_record(row: sqlite3.Row) -> ResourceRecord:
        return ResourceRecord(
            address=row["address"],
            type=row["type"],
            id=row["resource_id"],
            attributes=json.loads(row["attributes"]),
            depends_on=json.loads(row["depends_on"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    # -- Resources -----------------------------------------------------------

    def get(self, address: str) -> Optional[ResourceRecord]:
        """Get the stored record for an address, or None."""
        assert self._conn is not None
        row = self._conn.execute(
            "SELECT * FROM resources WHERE address = ?", (address,)
        ).fetchone()
        return self._to_record(row) if row else None

    def list(self, resource_type: Optional[str] = None) -> list[ResourceRecord]:
        """List stored records, optionally filtered by type."""
        assert self._conn is not None
        if resource_type:
            rows = self._conn.execute(
                "SELECT * FROM resources WHERE type = ? ORDER BY address",
                (resource_type,),
            ).fetchall()
        else:
            rows = self._conn.execute(
                "SELECT * FROM resources ORDER BY address"
            ).fetchall()
        return [self._to_record(r) for r in rows]

    def put(self, record: ResourceRecord) -> None:
        """Insert or replace the record for its address."""
        assert self._conn is not None
        record.updated_at = datetime.now(UTC)
        self._conn.execute(
            """INSERT OR REPLACE INTO resources
               (address, type, resource_id, attributes, depends_on, updated_at)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (record.address, record.type, record.id,
             json.dumps(record.attributes, sort_keys=True),
             json.dumps(list(record.depends_on)),
             record.updated_at.isoformat()),
        )
        self._conn.commit()

    def remove(self, address: str) -> bool:
        """Drop the record for an address. Returns True if one existed."""
        assert self._conn is not None
        cursor = self._conn.execute(
            "DELETE FROM resources WHERE address = ?", (address,)
        )
        self._conn.commit()
        return cursor.rowcount > 0

    # -- Operations ----------------------------------------------------------

    def record_operation(
        self,
        address: str,
        operation: str,
        status: str,
        duration_seconds: float = 0.0,
        error: str = "",
    ) -> int:
        """Record a resource operation. Returns the operation ID."""
        assert self._conn is not None
        cursor = self._conn.execute(
            """INSERT INTO operations
               (address, operation, status, executed_at, duration_seconds, error)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (address, operation, status,
             datetime.now(UTC).isoformat(), duration_seconds, error),
        )
        self._conn.commit()
        return cursor.lastrowid

    def get_operations(
        self,
        address: Optional[str] = None,
        limit: int = 50,
    ) -> list[dict]:
        """Get operation history, newest first."""
        assert self._conn is not None
        if address:
            rows = self._conn.execute(
                "SELECT * FROM operations WHERE address = ? ORDER BY id DESC LIMIT ?",
                (address, limit),
            ).fetchall()
        else:
            rows = self._conn.execute(
                "SELECT * FROM operations ORDER BY id DESC LIMIT ?",
                (limit,),
            ).fetchall()
        return [dict(r) for r in rows]
