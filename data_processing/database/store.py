"""
Record store interface keyed by (id, timestamp).
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from data_processing.ingestion.models import CanonicalRecord, RecordPatch


class RecordStore(ABC):
    """Persists canonical records.

    The pipeline only calls put_record; the lookups and mutations serve the
    CLI and operational tooling. Implementations raise PersistenceError.
    """

    @abstractmethod
    def put_record(self, record: CanonicalRecord) -> None:
        """Write one record, replacing any record with the same key."""

    @abstractmethod
    def get_record(self, record_id: str, timestamp: int) -> Optional[CanonicalRecord]:
        """Fetch one record by its full key."""

    @abstractmethod
    def query_by_id(self, record_id: str) -> List[CanonicalRecord]:
        """All records sharing an id, oldest first."""

    @abstractmethod
    def scan(self, limit: int = 100) -> List[CanonicalRecord]:
        """Up to `limit` records in store order."""

    @abstractmethod
    def update_record(self, record_id: str, timestamp: int, patch: RecordPatch) -> Optional[CanonicalRecord]:
        """Apply a patch and return the updated record, or None if absent."""

    @abstractmethod
    def delete_record(self, record_id: str, timestamp: int) -> bool:
        """Delete one record; True when something was removed."""

    def initialize_schema(self) -> None:
        """Create backing tables where the backend needs it."""

    def health_check(self) -> bool:
        return True
