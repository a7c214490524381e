"""
Record models for product data flowing through the pipeline.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from data_processing.errors import InvalidPatchError

# Incoming field name -> canonical field name. Source files use Portuguese headers.
FIELD_ALIASES = {
    'id': ('id',),
    'name': ('nome', 'name'),
    'category': ('categoria', 'category'),
    'price': ('preco', 'preço', 'price'),
    'stock': ('estoque', 'stock'),
}

KEY_FIELDS = ('id', 'timestamp')
PATCHABLE_FIELDS = ('name', 'category', 'price', 'stock')


class RecordSource(str, Enum):
    """Entry point a record came through."""

    FILE = "file"
    API = "api"


@dataclass(frozen=True)
class RawRow:
    """One decoded data line: header name -> trimmed string value."""

    line_number: int
    fields: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Provenance:
    """Where a record originated, recorded for audit."""

    source: RecordSource
    detail: str
    request_id: Optional[str] = None

    @classmethod
    def for_file(cls, key: str, request_id: Optional[str] = None) -> "Provenance":
        return cls(RecordSource.FILE, key, request_id)

    @classmethod
    def for_api(cls, caller: Optional[str], request_id: Optional[str] = None) -> "Provenance":
        return cls(RecordSource.API, caller or "unknown", request_id)


class CanonicalRecord(BaseModel):
    """The persisted unit, keyed by (id, timestamp)."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    timestamp: int = Field(ge=0)
    name: str = Field(min_length=1)
    category: str
    price: Decimal = Field(ge=0)
    stock: int = Field(ge=0)
    source: RecordSource
    source_detail: str
    request_id: Optional[str] = None
    processed_at: str
    processor_version: str

    @field_validator('id', 'name')
    @classmethod
    def validate_identity(cls, v):
        if not v.strip():
            raise ValueError('must not be blank')
        return v

    @property
    def key(self) -> Dict[str, Any]:
        return {'id': self.id, 'timestamp': self.timestamp}

    def to_item(self) -> Dict[str, Any]:
        """Store representation: Decimal price, enum values as strings, no nulls."""
        item = self.model_dump()
        item['source'] = self.source.value
        if item['request_id'] is None:
            del item['request_id']
        return item

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly representation used in responses and notifications."""
        data = self.model_dump()
        data['source'] = self.source.value
        data['price'] = float(self.price)
        return data

    @classmethod
    def from_item(cls, item: Mapping[str, Any]) -> "CanonicalRecord":
        """Rebuild a record from a store row."""
        data = dict(item)
        data['timestamp'] = int(data['timestamp'])
        data['stock'] = int(data['stock'])
        data['price'] = Decimal(str(data['price']))
        return cls(**data)


class RecordPatch(BaseModel):
    """Typed partial update of the mutable fields of a stored record."""

    model_config = ConfigDict(extra='forbid', frozen=True)

    name: Optional[str] = Field(default=None, min_length=1)
    category: Optional[str] = Field(default=None, min_length=1)
    price: Optional[Decimal] = Field(default=None, ge=0)
    stock: Optional[int] = Field(default=None, ge=0)

    @classmethod
    def from_mapping(cls, updates: Mapping[str, Any]) -> "RecordPatch":
        """Validate an arbitrary key set; unknown or key fields are refused."""
        if not updates:
            raise InvalidPatchError("Patch must change at least one field")

        key_fields = sorted(set(updates) & set(KEY_FIELDS))
        if key_fields:
            raise InvalidPatchError(f"Key fields cannot be updated: {', '.join(key_fields)}")

        unknown = sorted(set(updates) - set(PATCHABLE_FIELDS))
        if unknown:
            raise InvalidPatchError(f"Unknown fields in patch: {', '.join(unknown)}")

        try:
            return cls(**dict(updates))
        except ValidationError as e:
            raise InvalidPatchError(f"Invalid patch values: {e}") from e

    def changes(self) -> Dict[str, Any]:
        """Fields explicitly set by this patch, in declaration order."""
        return self.model_dump(exclude_unset=True)


class BatchOutcome(BaseModel):
    """Aggregate result of one batch run, handed to the notifier."""

    model_config = ConfigDict(frozen=True)

    batch_id: str
    bucket: Optional[str] = None
    key: str
    total_rows: int = 0
    records_processed: int = 0
    records_rejected: int = 0
    records_failed: int = 0
    processed_at: str
    request_id: Optional[str] = None

    @property
    def records_unsuccessful(self) -> int:
        return self.records_rejected + self.records_failed

    @property
    def success_rate(self) -> float:
        if self.total_rows == 0:
            return 0.0
        return self.records_processed / self.total_rows

    def success_rate_label(self) -> str:
        return f"{self.success_rate * 100:.2f}%"

    def to_event(self) -> Dict[str, Any]:
        """Notification payload for a completed batch."""
        return {
            'event_type': 'DATA_PROCESSING_COMPLETED',
            'batch_id': self.batch_id,
            'file': self.key,
            'bucket': self.bucket,
            'records_processed': self.records_processed,
            'records_failed': self.records_unsuccessful,
            'records_rejected': self.records_rejected,
            'persistence_failures': self.records_failed,
            'total_records': self.total_rows,
            'success_rate': self.success_rate_label(),
            'processed_at': self.processed_at,
            'request_id': self.request_id,
        }
