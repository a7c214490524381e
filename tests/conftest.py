"""
Shared fakes for the store, notifier and object source.
"""

from datetime import datetime, timedelta
from typing import Dict, List, Optional

import pytest
import pytz

from data_processing.config import Settings
from data_processing.components import Components
from data_processing.database.store import RecordStore
from data_processing.errors import NotificationError, PersistenceError, SourceUnavailableError
from data_processing.ingestion.enricher import Enricher
from data_processing.ingestion.models import CanonicalRecord, RecordPatch
from data_processing.ingestion.object_source import ObjectLocator, ObjectSource
from data_processing.notifications.notifier import Notifier

FIXED_TIME = datetime(2024, 3, 15, 12, 30, 0, tzinfo=pytz.UTC)
FIXED_MILLIS = int(FIXED_TIME.timestamp() * 1000)


class FixedClock:
    """Returns the same instant until advanced."""

    def __init__(self, moment: datetime = FIXED_TIME):
        self.moment = moment

    def __call__(self) -> datetime:
        return self.moment

    def advance(self, milliseconds: int) -> None:
        self.moment = self.moment + timedelta(milliseconds=milliseconds)


class FakeStore(RecordStore):
    """In-memory store; ids listed in fail_ids raise PersistenceError on put."""

    def __init__(self, fail_ids=()):
        self.records: Dict[tuple, CanonicalRecord] = {}
        self.put_calls: List[CanonicalRecord] = []
        self.fail_ids = set(fail_ids)

    def put_record(self, record):
        self.put_calls.append(record)
        if record.id in self.fail_ids:
            raise PersistenceError(f"Simulated write failure for {record.id}")
        self.records[(record.id, record.timestamp)] = record

    def get_record(self, record_id, timestamp):
        return self.records.get((record_id, timestamp))

    def query_by_id(self, record_id):
        return sorted(
            (r for r in self.records.values() if r.id == record_id),
            key=lambda r: r.timestamp
        )

    def scan(self, limit=100):
        return list(self.records.values())[:limit]

    def update_record(self, record_id, timestamp, patch: RecordPatch):
        record = self.records.get((record_id, timestamp))
        if record is None:
            return None
        updated = record.model_copy(update=patch.changes())
        self.records[(record_id, timestamp)] = updated
        return updated

    def delete_record(self, record_id, timestamp):
        return self.records.pop((record_id, timestamp), None) is not None


class FakeNotifier(Notifier):
    """Captures published events; optionally fails every publish."""

    def __init__(self, fail: bool = False, error: Exception = None):
        self.published: List[dict] = []
        self.fail = fail
        self.error = error

    def publish(self, message, subject="Notification", attributes=None):
        if self.error is not None:
            raise self.error
        if self.fail:
            raise NotificationError("Simulated notification failure")
        self.published.append({'message': message, 'subject': subject, 'attributes': attributes or {}})
        return f"msg-{len(self.published)}"


class FakeObjectSource(ObjectSource):
    """Serves objects from a dict keyed by object key."""

    def __init__(self, objects: Optional[Dict[str, bytes]] = None):
        self.objects = objects or {}
        self.reads: List[ObjectLocator] = []

    def read(self, locator):
        self.reads.append(locator)
        if locator.key not in self.objects:
            raise SourceUnavailableError(f"Object not found: {locator.uri}")
        return self.objects[locator.key]


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def enricher_factory(clock):
    ids = iter(f"generated-{n}" for n in range(1, 1000))
    return lambda: Enricher(clock=clock, id_factory=lambda: next(ids))


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def object_source():
    return FakeObjectSource()


@pytest.fixture
def components(store, notifier, object_source):
    return Components(
        settings=Settings(),
        store=store,
        notifier=notifier,
        object_source=object_source,
    )


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every variable Settings.from_env reads."""
    for name in [
        'AWS_ENDPOINT_URL', 'AWS_REGION', 'AWS_ACCESS_KEY_ID', 'AWS_SECRET_ACCESS_KEY',
        'TABLE_NAME', 'BUCKET_NAME', 'TOPIC_ARN', 'STORE_BACKEND', 'SQLITE_DB_PATH',
        'DATABASE_URL', 'NOTIFIER_BACKEND', 'SMTP_SERVER', 'SMTP_PORT', 'SMTP_USERNAME',
        'SMTP_PASSWORD', 'SMTP_USE_TLS', 'NOTIFY_EMAIL_TO', 'LOCAL_DATA_DIR',
        'LOG_LEVEL', 'LOG_FORMAT', 'LOG_FILE',
    ]:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch
