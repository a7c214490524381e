"""
Enrichment of validated input into canonical records.

This is the single place defaults are applied. Malformed numeric input
degrades to zero instead of discarding an otherwise identifiable record.
"""

import logging
import uuid
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Callable, Optional

import pytz

from data_processing.ingestion.models import CanonicalRecord, Provenance
from data_processing.ingestion.validator import AcceptedRecord

logger = logging.getLogger(__name__)

PROCESSOR_VERSION = "1.0.0"

DEFAULT_FILE_CATEGORY = "Sem categoria"
DEFAULT_API_CATEGORY = "API"

ZERO = Decimal("0")

# Bounds keep every value within what the stores can hold exactly
MAX_INTEGER_DIGITS = 15
PRICE_DECIMAL_PLACES = 8
PRICE_QUANTUM = Decimal(1).scaleb(-PRICE_DECIMAL_PLACES)


def utc_now() -> datetime:
    return datetime.now(pytz.UTC)


def new_record_id() -> str:
    return str(uuid.uuid4())


def parse_decimal(value: Any) -> Optional[Decimal]:
    """A finite, non-negative decimal with at most MAX_INTEGER_DIGITS integer digits, or None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not number.is_finite() or number < 0:
        return None
    if number and number.adjusted() >= MAX_INTEGER_DIGITS:
        return None
    return number


def parse_price(value: Any) -> Decimal:
    """Parse a price, rounded to PRICE_DECIMAL_PLACES; anything else becomes 0."""
    price = parse_decimal(value)
    if price is None:
        return ZERO
    if price.as_tuple().exponent < -PRICE_DECIMAL_PLACES:
        price = price.quantize(PRICE_QUANTUM, rounding=ROUND_HALF_UP)
    return price if price else ZERO


def parse_stock(value: Any) -> int:
    """Parse a stock count, truncating decimals; anything else becomes 0."""
    stock = parse_decimal(value)
    if stock is None:
        return 0
    return int(stock)


def to_millis(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


class Enricher:
    """Builds canonical records from accepted input.

    One instance per invocation. Timestamps issued by an instance are
    strictly increasing, so records enriched within the same millisecond
    still get distinct (id, timestamp) keys.
    """

    def __init__(
        self,
        clock: Callable[[], datetime] = utc_now,
        id_factory: Callable[[], str] = new_record_id,
        processor_version: str = PROCESSOR_VERSION
    ):
        self.clock = clock
        self.id_factory = id_factory
        self.processor_version = processor_version
        self._last_timestamp: Optional[int] = None

    def enrich_file_row(self, accepted: AcceptedRecord, provenance: Provenance) -> CanonicalRecord:
        """Enrich a CSV row; the row must already carry an id."""
        return self._build(
            record_id=str(accepted.get('id')).strip(),
            accepted=accepted,
            provenance=provenance,
            default_category=DEFAULT_FILE_CATEGORY
        )

    def enrich_api_payload(self, accepted: AcceptedRecord, provenance: Provenance) -> CanonicalRecord:
        """Enrich an API payload, generating an id when none was supplied."""
        record_id = accepted.get('id')
        record_id = str(record_id).strip() if record_id is not None else self.id_factory()
        return self._build(
            record_id=record_id,
            accepted=accepted,
            provenance=provenance,
            default_category=DEFAULT_API_CATEGORY
        )

    def _next_timestamp(self, moment: datetime) -> int:
        timestamp = to_millis(moment)
        if self._last_timestamp is not None and timestamp <= self._last_timestamp:
            timestamp = self._last_timestamp + 1
        self._last_timestamp = timestamp
        return timestamp

    def _build(
        self,
        record_id: str,
        accepted: AcceptedRecord,
        provenance: Provenance,
        default_category: str
    ) -> CanonicalRecord:
        moment = self.clock()

        category = accepted.get('category')
        category = str(category).strip() if category is not None else ''

        return CanonicalRecord(
            id=record_id,
            timestamp=self._next_timestamp(moment),
            name=str(accepted.get('name')).strip(),
            category=category or default_category,
            price=parse_price(accepted.get('price')),
            stock=parse_stock(accepted.get('stock')),
            source=provenance.source,
            source_detail=provenance.detail,
            request_id=provenance.request_id,
            processed_at=moment.isoformat(),
            processor_version=self.processor_version
        )
