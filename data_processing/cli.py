"""
Command-line entry point for running and inspecting the pipeline.
"""

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

from data_processing.components import Components, build_components
from data_processing.config import Settings
from data_processing.errors import ConfigurationError, InvalidPatchError, PipelineError
from data_processing.ingestion.batch_processor import BatchProcessor
from data_processing.ingestion.models import RecordPatch
from data_processing.ingestion.object_source import ObjectLocator
from data_processing.ingestion.record_creator import ApiRequest, RecordCreator
from data_processing.monitoring.health import HealthChecker
from data_processing.monitoring.logger_config import IngestionLogger, OperationLogger
from data_processing.tools.csv_generator import CSVGenerator


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='data-processing',
        description='Ingest product CSV files and API payloads into the record store'
    )
    subparsers = parser.add_subparsers(dest='command', required=True)

    process_file = subparsers.add_parser('process-file', help='Process a local CSV file')
    process_file.add_argument('path', help='Path to the CSV file')

    process_s3 = subparsers.add_parser('process-s3', help='Process a CSV object from the bucket')
    process_s3.add_argument('--bucket', help='Bucket name (defaults to BUCKET_NAME)')
    process_s3.add_argument('--key', required=True, help='Object key')

    create = subparsers.add_parser('create-record', help='Create one record as the API would')
    create.add_argument('payload', help='JSON object, e.g. \'{"nome": "Widget"}\'')

    get = subparsers.add_parser('get', help='Fetch one record')
    get.add_argument('id')
    get.add_argument('timestamp', type=int)

    query = subparsers.add_parser('query', help='List every record with an id')
    query.add_argument('id')

    scan = subparsers.add_parser('scan', help='List stored records')
    scan.add_argument('--limit', type=int, default=100)

    update = subparsers.add_parser('update', help='Patch the mutable fields of a record')
    update.add_argument('id')
    update.add_argument('timestamp', type=int)
    update.add_argument('--set', dest='assignments', action='append', required=True,
                        metavar='FIELD=VALUE', help='Field to change; repeatable')

    delete = subparsers.add_parser('delete', help='Delete one record')
    delete.add_argument('id')
    delete.add_argument('timestamp', type=int)

    subparsers.add_parser('init-store', help='Create the backing table')

    health = subparsers.add_parser('health', help='Check component health')
    health.add_argument('--format', choices=['json', 'text'], default='text')

    generate = subparsers.add_parser('generate-csv', help='Generate sample product CSV files')
    generate.add_argument('--output', '-o', required=True, help='Output CSV file path')
    generate.add_argument('--count', '-c', type=int, default=100, help='Number of products')
    generate.add_argument('--scenarios', '-s', action='store_true', help='Generate edge-case scenarios')
    generate.add_argument('--seed', type=int, help='Random seed for reproducible output')

    return parser


def parse_assignments(assignments: List[str]) -> dict:
    updates = {}
    for assignment in assignments:
        field_name, separator, value = assignment.partition('=')
        if not separator:
            raise InvalidPatchError(f"Expected FIELD=VALUE, got '{assignment}'")
        updates[field_name.strip()] = value.strip()
    return updates


def print_json(data) -> None:
    print(json.dumps(data, indent=2, default=str))


def run_batch(components: Components, locator: ObjectLocator) -> int:
    processor = BatchProcessor(components.object_source, components.store, components.notifier)
    result = processor.process(locator)
    print_json(result.to_response())
    return 0 if result.succeeded else 1


def print_health(result: dict, output_format: str) -> None:
    if output_format == 'json':
        print_json(result)
        return

    print(f"Health Status: {result['overall_status']}")
    print(f"Timestamp: {result['timestamp']}")
    print(f"Response Time: {result['response_time_ms']}ms")
    for component, health in result['components'].items():
        print(f"\n{component.replace('_', ' ').title()}:")
        print(f"  Status: {health['status']}")
        if 'error' in health:
            print(f"  Error: {health['error']}")


def run_command(args: argparse.Namespace, settings: Settings) -> int:
    if args.command == 'generate-csv':
        generator = CSVGenerator(seed=args.seed)
        if args.scenarios:
            generator.generate_test_scenarios(Path(args.output).parent)
        else:
            generator.generate_csv(args.output, args.count)
        return 0

    components = build_components(settings, local_source=args.command == 'process-file')

    if args.command == 'process-file':
        return run_batch(components, ObjectLocator(bucket=None, key=str(Path(args.path).resolve())))

    if args.command == 'process-s3':
        return run_batch(components, ObjectLocator(bucket=args.bucket or settings.bucket_name, key=args.key))

    if args.command == 'create-record':
        creator = RecordCreator(components.store, components.notifier)
        response = creator.handle(ApiRequest(method='POST', body=args.payload, source_ip='cli'))
        print_json({'statusCode': response.status_code, **response.body})
        return 0 if response.status_code < 400 else 1

    store = components.store

    if args.command == 'get':
        record = store.get_record(args.id, args.timestamp)
        if record is None:
            print(f"Record not found: {args.id}/{args.timestamp}")
            return 1
        print_json(record.to_dict())
        return 0

    if args.command == 'query':
        print_json([record.to_dict() for record in store.query_by_id(args.id)])
        return 0

    if args.command == 'scan':
        print_json([record.to_dict() for record in store.scan(args.limit)])
        return 0

    if args.command == 'update':
        patch = RecordPatch.from_mapping(parse_assignments(args.assignments))
        record = store.update_record(args.id, args.timestamp, patch)
        if record is None:
            print(f"Record not found: {args.id}/{args.timestamp}")
            return 1
        print_json(record.to_dict())
        return 0

    if args.command == 'delete':
        if not store.delete_record(args.id, args.timestamp):
            print(f"Record not found: {args.id}/{args.timestamp}")
            return 1
        print(f"🗑️ Record deleted: {args.id}/{args.timestamp}")
        return 0

    if args.command == 'init-store':
        with OperationLogger('init_store', backend=settings.store_backend):
            store.initialize_schema()
        print(f"✅ Store initialized ({settings.store_backend})")
        return 0

    if args.command == 'health':
        result = HealthChecker(components).comprehensive_health_check()
        print_health(result, args.format)
        return 0 if result['overall_status'] == 'healthy' else 1

    raise ValueError(f"Unknown command: {args.command}")


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    args = build_parser().parse_args(argv)

    try:
        settings = Settings.from_env()
        IngestionLogger.setup_logging(settings.log_level, settings.log_format, settings.log_file)
        return run_command(args, settings)
    except (ConfigurationError, InvalidPatchError, PipelineError) as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
