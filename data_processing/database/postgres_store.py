"""
Postgres-backed record store with connection pooling.
"""

import logging
from typing import List, Optional

import psycopg2
from psycopg2 import pool, sql

from data_processing.database.sqlite_store import RECORD_COLUMNS
from data_processing.database.store import RecordStore
from data_processing.errors import ConfigurationError, PersistenceError
from data_processing.ingestion.models import CanonicalRecord, RecordPatch

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS processed_records (
    id TEXT NOT NULL,
    timestamp BIGINT NOT NULL,
    name TEXT NOT NULL,
    category TEXT NOT NULL,
    price NUMERIC NOT NULL CHECK (price >= 0),
    stock INTEGER NOT NULL CHECK (stock >= 0),
    source TEXT NOT NULL CHECK (source IN ('file', 'api')),
    source_detail TEXT NOT NULL,
    request_id TEXT,
    processed_at TEXT NOT NULL,
    processor_version TEXT NOT NULL,
    created_at TIMESTAMPTZ DEFAULT NOW() NOT NULL,
    updated_at TIMESTAMPTZ DEFAULT NOW() NOT NULL,
    PRIMARY KEY (id, timestamp)
);
CREATE INDEX IF NOT EXISTS idx_processed_records_source ON processed_records(source)
"""

SELECT_COLUMNS = ', '.join(RECORD_COLUMNS)


class PostgresRecordStore(RecordStore):
    """Record store in a Postgres table, sharing the SQLite column layout."""

    def __init__(self, database_url: str, min_connections: int = 1, max_connections: int = 10):
        if not database_url:
            raise ConfigurationError("DATABASE_URL is required for the postgres store")
        self.database_url = database_url
        self.min_connections = min_connections
        self.max_connections = max_connections
        self.connection_pool: Optional[pool.ThreadedConnectionPool] = None

    def initialize_pool(self) -> None:
        """Initialize the connection pool."""
        try:
            self.connection_pool = pool.ThreadedConnectionPool(
                minconn=self.min_connections,
                maxconn=self.max_connections,
                dsn=self.database_url
            )
            logger.info(
                f"Database connection pool initialized: "
                f"{self.min_connections}-{self.max_connections} connections"
            )
        except psycopg2.Error as e:
            raise PersistenceError(f"Failed to initialize database connection pool: {e}") from e

    def get_connection(self):
        if not self.connection_pool:
            self.initialize_pool()
        try:
            return self.connection_pool.getconn()
        except psycopg2.Error as e:
            raise PersistenceError(f"Failed to get database connection: {e}") from e

    def return_connection(self, connection) -> None:
        if self.connection_pool and connection:
            self.connection_pool.putconn(connection)

    def close_all_connections(self) -> None:
        if self.connection_pool:
            self.connection_pool.closeall()
            self.connection_pool = None
            logger.info("All database connections closed")

    def execute_query(self, query, params: Optional[tuple] = None, fetch: bool = True):
        """Execute a query with automatic connection management."""
        connection = None
        try:
            connection = self.get_connection()
            with connection.cursor() as cursor:
                cursor.execute(query, params)

                if fetch:
                    results = []
                    if cursor.description:
                        columns = [desc[0] for desc in cursor.description]
                        results = [dict(zip(columns, row)) for row in cursor.fetchall()]
                    connection.commit()
                    return results

                connection.commit()
                return cursor.rowcount

        except psycopg2.Error as e:
            if connection:
                connection.rollback()
            raise PersistenceError(f"Database query failed: {e}") from e
        finally:
            if connection:
                self.return_connection(connection)

    def _to_records(self, rows) -> List[CanonicalRecord]:
        return [
            CanonicalRecord.from_item({k: v for k, v in row.items() if v is not None})
            for row in rows
        ]

    def initialize_schema(self) -> None:
        for statement in SCHEMA_SQL.split(';'):
            if statement.strip():
                self.execute_query(statement, fetch=False)
        logger.info("Postgres schema initialized")

    def put_record(self, record: CanonicalRecord) -> None:
        item = record.to_item()
        item.setdefault('request_id', None)

        updates = sql.SQL(', ').join(
            sql.SQL("{column} = EXCLUDED.{column}").format(column=sql.Identifier(column))
            for column in RECORD_COLUMNS if column not in ('id', 'timestamp')
        )
        query = sql.SQL("""
            INSERT INTO processed_records ({columns})
            VALUES ({values})
            ON CONFLICT (id, timestamp)
            DO UPDATE SET {updates}, updated_at = NOW()
        """).format(
            columns=sql.SQL(', ').join(map(sql.Identifier, RECORD_COLUMNS)),
            values=sql.SQL(', ').join(sql.Placeholder() * len(RECORD_COLUMNS)),
            updates=updates
        )

        self.execute_query(query, tuple(item[column] for column in RECORD_COLUMNS), fetch=False)
        logger.debug(f"Record stored in Postgres: {record.id}/{record.timestamp}")

    def get_record(self, record_id: str, timestamp: int) -> Optional[CanonicalRecord]:
        rows = self.execute_query(
            f"SELECT {SELECT_COLUMNS} FROM processed_records WHERE id = %s AND timestamp = %s",
            (record_id, timestamp)
        )
        records = self._to_records(rows)
        return records[0] if records else None

    def query_by_id(self, record_id: str) -> List[CanonicalRecord]:
        rows = self.execute_query(
            f"SELECT {SELECT_COLUMNS} FROM processed_records WHERE id = %s ORDER BY timestamp",
            (record_id,)
        )
        return self._to_records(rows)

    def scan(self, limit: int = 100) -> List[CanonicalRecord]:
        rows = self.execute_query(
            f"SELECT {SELECT_COLUMNS} FROM processed_records ORDER BY id, timestamp LIMIT %s",
            (limit,)
        )
        logger.info(f"Scan returned {len(rows)} records")
        return self._to_records(rows)

    def update_record(self, record_id: str, timestamp: int, patch: RecordPatch) -> Optional[CanonicalRecord]:
        changes = patch.changes()
        assignments = sql.SQL(', ').join(
            sql.SQL("{column} = {value}").format(
                column=sql.Identifier(column), value=sql.Placeholder()
            )
            for column in changes
        )
        query = sql.SQL("""
            UPDATE processed_records
            SET {assignments}, updated_at = NOW()
            WHERE id = %s AND timestamp = %s
            RETURNING {columns}
        """).format(
            assignments=assignments,
            columns=sql.SQL(', ').join(map(sql.Identifier, RECORD_COLUMNS))
        )

        rows = self.execute_query(query, (*changes.values(), record_id, timestamp))
        records = self._to_records(rows)
        if records:
            logger.info(f"Record updated: {record_id}")
        return records[0] if records else None

    def delete_record(self, record_id: str, timestamp: int) -> bool:
        deleted = self.execute_query(
            "DELETE FROM processed_records WHERE id = %s AND timestamp = %s",
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
