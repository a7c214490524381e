"""
SQLite-backed record store for local runs and demos.
"""

import os
import logging
import sqlite3
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

from data_processing.database.store import RecordStore
from data_processing.errors import PersistenceError
from data_processing.ingestion.models import CanonicalRecord, RecordPatch

logger = logging.getLogger(__name__)

RECORD_COLUMNS = (
    'id', 'timestamp', 'name', 'category', 'price', 'stock', 'source',
    'source_detail', 'request_id', 'processed_at', 'processor_version'
)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS processed_records (
    id TEXT NOT NULL,
    timestamp INTEGER NOT NULL,
    name TEXT NOT NULL,
    category TEXT NOT NULL,
    price TEXT NOT NULL,
    stock INTEGER NOT NULL,
    source TEXT NOT NULL CHECK (source IN ('file', 'api')),
    source_detail TEXT NOT NULL,
    request_id TEXT,
    processed_at TEXT NOT NULL,
    processor_version TEXT NOT NULL,
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP NOT NULL,
    updated_at DATETIME DEFAULT CURRENT_TIMESTAMP NOT NULL,
    PRIMARY KEY (id, timestamp)
);

CREATE INDEX IF NOT EXISTS idx_processed_records_source ON processed_records(source);
CREATE INDEX IF NOT EXISTS idx_processed_records_category ON processed_records(category);
"""


def record_row(record: CanonicalRecord) -> tuple:
    item = record.to_item()
    item['price'] = str(record.price)
    item.setdefault('request_id', None)
    return tuple(item[column] for column in RECORD_COLUMNS)


class SQLiteRecordStore(RecordStore):
    """Record store in a single SQLite file."""

    def __init__(self, db_path: str = None):
        self.db_path = db_path or os.getenv('SQLITE_DB_PATH', 'data/processed_records.db')
        self._ensure_db_directory()
        self._schema_ready = False

    def _ensure_db_directory(self):
        db_dir = os.path.dirname(self.db_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

    @contextmanager
    def get_connection(self):
        """Get a database connection, translating driver errors."""
        conn = None
        try:
            conn = sqlite3.connect(self.db_path)
            conn.row_factory = sqlite3.Row
            yield conn
        except sqlite3.Error as e:
            if conn:
                conn.rollback()
            raise PersistenceError(f"SQLite error: {e}") from e
        finally:
            if conn:
                conn.close()

    def execute_query(self, query: str, params: Optional[tuple] = None, fetch: bool = True):
        """Execute a query and return rows as dicts, or the affected row count."""
        self._ensure_schema()
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params or ())

            if fetch:
                return [dict(row) for row in cursor.fetchall()]

            conn.commit()
            return cursor.rowcount

    def initialize_schema(self) -> None:
        with self.get_connection() as conn:
            conn.executescript(SCHEMA_SQL)
            conn.commit()
        self._schema_ready = True
        logger.info(f"SQLite schema initialized: {self.db_path}")

    def _ensure_schema(self) -> None:
        if not self._schema_ready:
            self.initialize_schema()

    def _to_records(self, rows: List[Dict[str, Any]]) -> List[CanonicalRecord]:
        return [CanonicalRecord.from_item(self._strip_nulls(row)) for row in rows]

    @staticmethod
    def _strip_nulls(row: Dict[str, Any]) -> Dict[str, Any]:
        return {k: v for k, v in row.items() if k in RECORD_COLUMNS and v is not None}

    def put_record(self, record: CanonicalRecord) -> None:
        placeholders = ', '.join('?' for _ in RECORD_COLUMNS)
        query = f"""
            INSERT OR REPLACE INTO processed_records ({', '.join(RECORD_COLUMNS)})
            VALUES ({placeholders})
        """
        self.execute_query(query, record_row(record), fetch=False)
        logger.debug(f"Record stored in SQLite: {record.id}/{record.timestamp}")

    def get_record(self, record_id: str, timestamp: int) -> Optional[CanonicalRecord]:
        rows = self.execute_query(
            "SELECT * FROM processed_records WHERE id = ? AND timestamp = ?",
            (record_id, timestamp)
        )
        records = self._to_records(rows)
        return records[0] if records else None

    def query_by_id(self, record_id: str) -> List[CanonicalRecord]:
        rows = self.execute_query(
            "SELECT * FROM processed_records WHERE id = ? ORDER BY timestamp",
            (record_id,)
        )
        return self._to_records(rows)

    def scan(self, limit: int = 100) -> List[CanonicalRecord]:
        rows = self.execute_query(
            "SELECT * FROM processed_records ORDER BY id, timestamp LIMIT ?",
            (limit,)
        )
        logger.info(f"Scan returned {len(rows)} records")
        return self._to_records(rows)

    def update_record(self, record_id: str, timestamp: int, patch: RecordPatch) -> Optional[CanonicalRecord]:
        changes = patch.changes()
        if 'price' in changes:
            changes['price'] = str(changes['price'])

        assignments = ', '.join(f"{column} = ?" for column in changes)
        query = f"""
            UPDATE processed_records
            SET {assignments}, updated_at = CURRENT_TIMESTAMP
            WHERE id = ? AND timestamp = ?
        """
        updated = self.execute_query(
            query, (*changes.values(), record_id, timestamp), fetch=False
        )
        if not updated:
            return None

        logger.info(f"Record updated: {record_id}")
        return self.get_record(record_id, timestamp)

    def delete_record(self, record_id: str, timestamp: int) -> bool:
        deleted = self.execute_query(
            "DELETE FROM processed_records WHERE id = ? AND timestamp = ?",
            (record_id, timestamp),
            fetch=False
        )
        return deleted > 0

    def health_check(self) -> bool:
        try:
            result = self.execute_query("SELECT 1 as health_check")
            return len(result) > 0 and result[0]['health_check'] == 1
        except PersistenceError as e:
            logger.error(f"Database health check failed: {e}")
            return False
