"""
Batch orchestrator: one CSV object in, one outcome notification out.
"""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

from data_processing.database.store import RecordStore
from data_processing.errors import ErrorKind, NotificationError, PipelineError
from data_processing.ingestion.csv_decoder import calculate_content_hash, decode_bytes, decode_rows
from data_processing.ingestion.enricher import Enricher, utc_now
from data_processing.ingestion.models import BatchOutcome, Provenance, RawRow
from data_processing.ingestion.object_source import ObjectLocator, ObjectSource
from data_processing.ingestion.validator import validate_row
from data_processing.monitoring.logger_config import CorrelationLogger, get_logger
from data_processing.notifications.notifier import Notifier


class BatchState(str, Enum):
    START = "start"
    DECODING = "decoding"
    PROCESSING = "processing"
    AGGREGATING = "aggregating"
    NOTIFYING = "notifying"
    DONE = "done"
    FAILED = "failed"


@dataclass
class RowCounters:
    attempted: int = 0
    processed: int = 0
    rejected: int = 0
    failed: int = 0


@dataclass
class BatchResult:
    """Whether the batch itself completed, plus its row statistics."""

    batch_id: str
    locator: ObjectLocator
    state: BatchState
    outcome: Optional[BatchOutcome] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    transitions: List[BatchState] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.state == BatchState.DONE

    def to_response(self) -> dict:
        """Body of the invocation result."""
        if not self.succeeded:
            return {
                'message': 'Processing failed',
                'file': self.locator.key,
                'error': self.error,
            }

        outcome = self.outcome
        return {
            'message': 'Processing completed successfully',
            'file': outcome.key,
            'records_processed': outcome.records_processed,
            'records_failed': outcome.records_unsuccessful,
            'records_rejected': outcome.records_rejected,
            'total_records': outcome.total_rows,
            'success_rate': outcome.success_rate_label(),
        }


class BatchProcessor:
    """Drives decode, validate, enrich and persist over every row of one object.

    Rows run sequentially in source order. Rejections and per-row store
    failures are counted and never abort the batch; only an unreadable or
    undecodable source fails it.
    """

    def __init__(
        self,
        object_source: ObjectSource,
        store: RecordStore,
        notifier: Notifier,
        enricher_factory: Callable[[], Enricher] = Enricher,
        clock=utc_now
    ):
        self.object_source = object_source
        self.store = store
        self.notifier = notifier
        self.enricher_factory = enricher_factory
        self.clock = clock

    def process(self, locator: ObjectLocator, request_id: str = None) -> BatchResult:
        """Process one object end to end."""
        batch_id = str(uuid.uuid4())
        log = get_logger(batch_id, file=locator.key, bucket=locator.bucket)
        result = BatchResult(batch_id=batch_id, locator=locator, state=BatchState.START)
        self._transition(result, BatchState.START)

        log.info(f"Processing file: {locator.uri}", request_id=request_id)

        try:
            self._transition(result, BatchState.DECODING)
            content = self.object_source.read(locator)
            log.info(
                "File content read",
                size_bytes=len(content),
                sha256=calculate_content_hash(content)[:16]
            )
            text = decode_bytes(content, locator.key)
        except PipelineError as e:
            return self._fail(result, e.message, e.kind, log, request_id)
        except Exception as e:
            log.exception("Unexpected error while reading source")
            return self._fail(result, str(e), ErrorKind.SOURCE_UNAVAILABLE, log, request_id)

        self._transition(result, BatchState.PROCESSING)
        counters = self._process_rows(text, locator, request_id, log)

        self._transition(result, BatchState.AGGREGATING)
        outcome = BatchOutcome(
            batch_id=batch_id,
            bucket=locator.bucket,
            key=locator.key,
            total_rows=counters.attempted,
            records_processed=counters.processed,
            records_rejected=counters.rejected,
            records_failed=counters.failed,
            processed_at=self.clock().isoformat(),
            request_id=request_id
        )
        result.outcome = outcome

        self._transition(result, BatchState.NOTIFYING)
        self._notify(
            outcome.to_event(),
            'Data Processing Completed',
            {
                'event_type': 'processing_completed',
                'file_name': locator.key,
                'records_count': str(outcome.records_processed),
            },
            log
        )

        self._transition(result, BatchState.DONE)
        log.info(
            "Processing completed",
            total_rows=outcome.total_rows,
            records_processed=outcome.records_processed,
            records_rejected=outcome.records_rejected,
            records_failed=outcome.records_failed,
            success_rate=outcome.success_rate_label()
        )
        return result

    def _process_rows(
        self,
        text: str,
        locator: ObjectLocator,
        request_id: Optional[str],
        log: CorrelationLogger
    ) -> RowCounters:
        counters = RowCounters()
        enricher = self.enricher_factory()
        provenance = Provenance.for_file(locator.key, request_id)

        for row in decode_rows(text):
            counters.attempted += 1
            self._process_row(row, enricher, provenance, counters, log)

        return counters

    def _process_row(
        self,
        row: RawRow,
        enricher: Enricher,
        provenance: Provenance,
        counters: RowCounters,
        log: CorrelationLogger
    ) -> None:
        validation = validate_row(row.fields)
        if not validation.is_valid:
            counters.rejected += 1
            log.warning(
                f"Line {row.line_number}: {validation.rejection.message}, skipping",
                line=row.line_number,
                reason=validation.rejection.reason.value,
                error_kind=ErrorKind.ROW_REJECTED.value
            )
            return

        try:
            record = enricher.enrich_file_row(validation.accepted, provenance)
            self.store.put_record(record)
        except Exception as e:
            counters.failed += 1
            kind = e.kind if isinstance(e, PipelineError) else ErrorKind.PERSISTENCE_FAILED
            log.error(
                f"Line {row.line_number}: failed to process row: {e}",
                line=row.line_number,
                error_kind=kind.value
            )
            return

        counters.processed += 1
        log.debug(f"Line {row.line_number} processed: {record.name}", record_id=record.id)

    def _fail(
        self,
        result: BatchResult,
        message: str,
        kind: ErrorKind,
        log: CorrelationLogger,
        request_id: Optional[str]
    ) -> BatchResult:
        log.error(f"Fatal processing error: {message}", error_kind=kind.value)
        result.error = message
        result.error_kind = kind
        self._transition(result, BatchState.FAILED)
        self._notify_failure(result.batch_id, result.locator, message, kind, log, request_id)
        return result

    def reject_event(self, error: PipelineError, request_id: str = None) -> str:
        """Report a trigger event that names no readable object; returns its batch id."""
        batch_id = str(uuid.uuid4())
        log = get_logger(batch_id)
        log.error(f"Invalid trigger event: {error.message}", error_kind=error.kind.value, request_id=request_id)
        self._notify_failure(batch_id, None, error.message, error.kind, log, request_id)
        return batch_id

    def _notify_failure(
        self,
        batch_id: str,
        locator: Optional[ObjectLocator],
        message: str,
        kind: ErrorKind,
        log: CorrelationLogger,
        request_id: Optional[str]
    ) -> None:
        attributes = {'event_type': 'processing_failed'}
        if locator is not None:
            attributes['file_name'] = locator.key

        self._notify(
            {
                'event_type': 'DATA_PROCESSING_FAILED',
                'batch_id': batch_id,
                'file': locator.key if locator else None,
                'bucket': locator.bucket if locator else None,
                'error': message,
                'error_kind': kind.value,
                'processed_at': self.clock().isoformat(),
                'request_id': request_id,
            },
            'Data Processing Failed',
            attributes,
            log
        )

    def _notify(self, message: dict, subject: str, attributes: dict, log: CorrelationLogger) -> None:
        """Best-effort publish; a failure here never changes the batch result."""
        try:
            self.notifier.publish(message, subject, attributes)
        except NotificationError as e:
            log.error(f"Failed to send notification: {e.message}", error_kind=e.kind.value)
        except Exception as e:
            log.error(f"Failed to send notification: {e}", error_kind=ErrorKind.NOTIFICATION_FAILED.value)

    @staticmethod
    def _transition(result: BatchResult, state: BatchState) -> None:
        result.state = state
        result.transitions.append(state)
