"""
Function entry points for the two triggers.

    data_processor  <- object-created notification for one CSV file
    create_record   <- POST /records through an API gateway
"""

import json
from functools import lru_cache
from typing import Any, Dict

from data_processing.components import Components, build_components
from data_processing.config import Settings
from data_processing.errors import PipelineError
from data_processing.ingestion.batch_processor import BatchProcessor
from data_processing.ingestion.object_source import locator_from_s3_event
from data_processing.ingestion.record_creator import ApiRequest, RecordCreator
from data_processing.monitoring.logger_config import IngestionLogger


@lru_cache(maxsize=1)
def get_components() -> Components:
    """Cold-start wiring, reused by warm invocations."""
    settings = Settings.from_env()
    if not IngestionLogger.is_configured():
        IngestionLogger.setup_logging(settings.log_level, settings.log_format, settings.log_file)
    return build_components(settings)


def data_processor(event: Dict[str, Any], context: Any = None, components: Components = None) -> Dict[str, Any]:
    """Process the CSV object named by an S3 event."""
    components = components or get_components()
    request_id = getattr(context, 'aws_request_id', None)
    processor = BatchProcessor(components.object_source, components.store, components.notifier)

    try:
        locator = locator_from_s3_event(event)
    except PipelineError as e:
        processor.reject_event(e, request_id=request_id)
        return {
            'statusCode': 500,
            'body': json.dumps({'message': 'Processing failed', 'error': e.message}),
        }

    result = processor.process(locator, request_id=request_id)

    return {
        'statusCode': 200 if result.succeeded else 500,
        'body': json.dumps(result.to_response()),
    }


def create_record(event: Dict[str, Any], context: Any = None, components: Components = None) -> Dict[str, Any]:
    """Create one record from an API Gateway proxy event."""
    components = components or get_components()
    request = ApiRequest.from_event(event, context)
    creator = RecordCreator(components.store, components.notifier)
    return creator.handle(request).to_dict()
