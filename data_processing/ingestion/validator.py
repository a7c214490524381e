"""
Structural validation of CSV rows and API payloads.

Only the presence of identity fields is checked here. Numeric fields are
left untouched; the enricher coerces them instead of rejecting the record.
"""

import json
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

from data_processing.ingestion.models import FIELD_ALIASES


class RejectionReason(str, Enum):
    """Why an input could not become a record."""

    MISSING_IDENTITY = "missing_identity"
    MALFORMED_PAYLOAD = "malformed_payload"


@dataclass(frozen=True)
class Rejection:
    reason: RejectionReason
    message: str


@dataclass(frozen=True)
class AcceptedRecord:
    """Input values resolved to canonical field names; absent fields are omitted."""

    values: Dict[str, Any] = field(default_factory=dict)

    def get(self, name: str, default: Any = None) -> Any:
        return self.values.get(name, default)


@dataclass(frozen=True)
class ValidationResult:
    accepted: Optional[AcceptedRecord] = None
    rejection: Optional[Rejection] = None

    @property
    def is_valid(self) -> bool:
        return self.accepted is not None

    @classmethod
    def accept(cls, values: Dict[str, Any]) -> "ValidationResult":
        return cls(accepted=AcceptedRecord(values))

    @classmethod
    def reject(cls, reason: RejectionReason, message: str) -> "ValidationResult":
        return cls(rejection=Rejection(reason, message))


def is_usable(value: Any) -> bool:
    """A scalar whose trimmed text form is non-empty."""
    if value is None or isinstance(value, bool):
        return False
    if not isinstance(value, (str, int, float, Decimal)):
        return False
    return bool(str(value).strip())


def resolve_fields(raw: Mapping[str, Any]) -> Dict[str, Any]:
    """Map incoming names onto canonical ones; the first alias present wins."""
    resolved = {}
    for canonical, aliases in FIELD_ALIASES.items():
        for alias in aliases:
            value = raw.get(alias)
            if value is not None and value != '':
                resolved[canonical] = value
                break
    return resolved


def validate_row(fields: Mapping[str, str]) -> ValidationResult:
    """Batch path: both an id and a name must be present."""
    resolved = resolve_fields(fields)

    missing = [name for name in ('id', 'name') if not is_usable(resolved.get(name))]
    if missing:
        return ValidationResult.reject(
            RejectionReason.MISSING_IDENTITY,
            f"Incomplete data, missing: {', '.join(missing)}"
        )

    return ValidationResult.accept(resolved)


def validate_payload(payload: Mapping[str, Any]) -> ValidationResult:
    """API path: a name is required, the id may be generated later."""
    resolved = resolve_fields(payload)

    if not is_usable(resolved.get('name')):
        return ValidationResult.reject(
            RejectionReason.MISSING_IDENTITY,
            'Field "nome" is required'
        )

    if 'id' in resolved and not is_usable(resolved['id']):
        del resolved['id']

    return ValidationResult.accept(resolved)


def parse_payload(body: Any) -> Tuple[Optional[Dict[str, Any]], Optional[Rejection]]:
    """Interpret a request body as a key-value structure.

    A missing or empty body is an empty object; anything else must be a JSON
    object, either already decoded or as text.
    """
    if body is None:
        return {}, None

    if isinstance(body, dict):
        return body, None

    if isinstance(body, bytes):
        try:
            body = body.decode('utf-8')
        except UnicodeDecodeError:
            return None, Rejection(RejectionReason.MALFORMED_PAYLOAD, 'Request body is not valid UTF-8')

    if isinstance(body, str):
        if not body.strip():
            return {}, None
        try:
            parsed = json.loads(body, parse_float=Decimal)
        except ValueError:
            return None, Rejection(RejectionReason.MALFORMED_PAYLOAD, 'Request body is not valid JSON')
        if not isinstance(parsed, dict):
            return None, Rejection(RejectionReason.MALFORMED_PAYLOAD, 'Request body must be a JSON object')
        return parsed, None

    return None, Rejection(RejectionReason.MALFORMED_PAYLOAD, 'Request body must be a JSON object')
