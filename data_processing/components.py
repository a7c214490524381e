"""
Builds the store, notifier and object source from settings, once per process.
"""

import logging
from dataclasses import dataclass

from data_processing.aws import create_client
from data_processing.config import Settings
from data_processing.database.store import RecordStore
from data_processing.ingestion.object_source import LocalObjectSource, ObjectSource, S3ObjectSource
from data_processing.notifications.notifier import EmailNotifier, LogNotifier, Notifier, SNSNotifier

logger = logging.getLogger(__name__)


@dataclass
class Components:
    settings: Settings
    store: RecordStore
    notifier: Notifier
    object_source: ObjectSource


def build_record_store(settings: Settings) -> RecordStore:
    if settings.store_backend == 'sqlite':
        from data_processing.database.sqlite_store import SQLiteRecordStore
        return SQLiteRecordStore(settings.sqlite_path)

    if settings.store_backend == 'postgres':
        from data_processing.database.postgres_store import PostgresRecordStore
        return PostgresRecordStore(settings.database_url)

    from data_processing.database.dynamodb_store import DynamoDBRecordStore
    return DynamoDBRecordStore.from_config(settings.aws, settings.table_name)


def build_notifier(settings: Settings) -> Notifier:
    if settings.notifier_backend == 'email':
        return EmailNotifier(settings.smtp)

    if settings.notifier_backend == 'sns' and settings.topic_arn:
        return SNSNotifier(create_client('sns', settings.aws), settings.topic_arn)

    if settings.notifier_backend == 'sns':
        logger.warning("TOPIC_ARN not set, notifications will only be logged")
    return LogNotifier()


def build_object_source(settings: Settings, local: bool = False) -> ObjectSource:
    if local:
        return LocalObjectSource(settings.local_data_dir)
    return S3ObjectSource(create_client('s3', settings.aws))


def build_components(settings: Settings, local_source: bool = False) -> Components:
    """Wire every collaborator from one settings object."""
    components = Components(
        settings=settings,
        store=build_record_store(settings),
        notifier=build_notifier(settings),
        object_source=build_object_source(settings, local=local_source),
    )
    logger.info(
        f"Components ready: store={settings.store_backend}, "
        f"notifier={type(components.notifier).__name__}, "
        f"source={type(components.object_source).__name__}"
    )
    return components
