"""
Single-record orchestrator behind the REST endpoint.
"""

import base64
import binascii
import json
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional

from data_processing.database.store import RecordStore
from data_processing.errors import ErrorKind, NotificationError
from data_processing.ingestion.enricher import Enricher
from data_processing.ingestion.models import CanonicalRecord, Provenance
from data_processing.ingestion.validator import parse_payload, validate_payload
from data_processing.monitoring.logger_config import CorrelationLogger, get_logger
from data_processing.notifications.notifier import Notifier

logger = logging.getLogger(__name__)

ACCEPTED_METHOD = 'POST'

CORS_HEADERS = {
    'Content-Type': 'application/json',
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Methods': 'POST, OPTIONS',
    'Access-Control-Allow-Headers': 'Content-Type',
}


@dataclass(frozen=True)
class ApiRequest:
    """HTTP-shaped request delivered by the API trigger."""

    method: str
    body: Any = None
    source_ip: Optional[str] = None
    request_id: Optional[str] = None

    @classmethod
    def from_event(cls, event: Mapping[str, Any], context: Any = None) -> "ApiRequest":
        """Build a request from an API Gateway proxy event."""
        body = event.get('body')
        if body and event.get('isBase64Encoded') and isinstance(body, str):
            try:
                body = base64.b64decode(body)
            except (binascii.Error, ValueError):
                logger.warning("Request body flagged as base64 could not be decoded")

        identity = (event.get('requestContext') or {}).get('identity') or {}
        return cls(
            method=(event.get('httpMethod') or '').upper(),
            body=body,
            source_ip=identity.get('sourceIp'),
            request_id=getattr(context, 'aws_request_id', None)
        )


@dataclass(frozen=True)
class ApiResponse:
    status_code: int
    body: Dict[str, Any]
    headers: Dict[str, str] = field(default_factory=lambda: dict(CORS_HEADERS))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'statusCode': self.status_code,
            'headers': self.headers,
            'body': json.dumps(self.body, default=str),
        }

    @classmethod
    def error(cls, status_code: int, error: str, message: str) -> "ApiResponse":
        return cls(status_code, {'error': error, 'message': message})


class RecordCreator:
    """Validates, enriches and persists one API payload.

    Unlike the batch path, any validation or store failure ends the call
    with an error response.
    """

    def __init__(
        self,
        store: RecordStore,
        notifier: Notifier,
        enricher_factory: Callable[[], Enricher] = Enricher
    ):
        self.store = store
        self.notifier = notifier
        self.enricher_factory = enricher_factory

    def handle(self, request: ApiRequest) -> ApiResponse:
        if request.method == 'OPTIONS':
            return ApiResponse(200, {'message': 'CORS preflight successful'})

        log = get_logger(request.request_id or str(uuid.uuid4()), method=request.method)

        try:
            return self._create(request, log)
        except Exception as e:
            log.exception("Error creating record")
            return ApiResponse.error(500, 'Internal Server Error', str(e))

    def _create(self, request: ApiRequest, log: CorrelationLogger) -> ApiResponse:
        if request.method != ACCEPTED_METHOD:
            log.warning("Method not allowed")
            return ApiResponse.error(405, 'Method Not Allowed', 'Only POST is allowed')

        payload, rejection = parse_payload(request.body)
        if rejection:
            log.warning(
                "Malformed request body",
                reason=rejection.reason.value,
                error_kind=ErrorKind.MALFORMED_PAYLOAD.value
            )
            return ApiResponse.error(400, 'Invalid JSON', rejection.message)

        validation = validate_payload(payload)
        if not validation.is_valid:
            log.warning("Payload rejected", reason=validation.rejection.reason.value)
            return ApiResponse.error(400, 'Validation Error', validation.rejection.message)

        provenance = Provenance.for_api(request.source_ip, request.request_id)
        record = self.enricher_factory().enrich_api_payload(validation.accepted, provenance)

        log.info("Creating record", record_id=record.id, timestamp=record.timestamp)
        self.store.put_record(record)

        self._notify(record, log)

        return ApiResponse(201, {
            'message': 'Record created successfully',
            'id': record.id,
            'timestamp': record.timestamp,
            'data': record.to_dict(),
        })

    def _notify(self, record: CanonicalRecord, log: CorrelationLogger) -> None:
        try:
            self.notifier.publish(
                {
                    'event_type': 'RECORD_CREATED_VIA_API',
                    'record_id': record.id,
                    'record_name': record.name,
                    'created_at': record.processed_at,
                },
                'New Record Created via API',
                {'event_type': 'api_creation', 'record_id': record.id}
            )
        except NotificationError as e:
            log.error(f"Failed to send notification: {e.message}", error_kind=e.kind.value)
        except Exception as e:
            log.error(f"Failed to send notification: {e}", error_kind=ErrorKind.NOTIFICATION_FAILED.value)
