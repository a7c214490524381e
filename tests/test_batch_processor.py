"""
Tests for the batch orchestrator.
"""

from decimal import Decimal

import pytest

from conftest import FakeNotifier, FakeObjectSource
from data_processing.errors import ErrorKind, SourceUnavailableError
from data_processing.ingestion.batch_processor import BatchProcessor, BatchState
from data_processing.ingestion.enricher import DEFAULT_FILE_CATEGORY
from data_processing.ingestion.object_source import ObjectLocator

BUCKET = 'data-processing-bucket'
KEY = 'input/produtos.csv'
LOCATOR = ObjectLocator(bucket=BUCKET, key=KEY)

SAMPLE = (
    "id,nome,categoria,preco,estoque\n"
    "1,Notebook,Eletronicos,3500.00,15\n"
    "2,Mouse,Perifericos,80.50,100\n"
    "3,Cadeira,,abc,muitos\n"
)


@pytest.fixture
def make_processor(store, notifier, clock, enricher_factory):
    def factory(content, store=store, notifier=notifier):
        source = FakeObjectSource({KEY: content.encode('utf-8') if isinstance(content, str) else content})
        return BatchProcessor(source, store, notifier, enricher_factory=enricher_factory, clock=clock)
    return factory


def test_processes_every_row(make_processor, store, notifier):
    result = make_processor(SAMPLE).process(LOCATOR)

    assert result.succeeded
    assert result.outcome.total_rows == 3
    assert result.outcome.records_processed == 3
    assert len(store.records) == 3
    assert [r.id for r in store.put_calls] == ['1', '2', '3']


def test_row_counts_sum_to_rows_attempted(make_processor, store):
    content = (
        "id,nome,preco\n"
        "1,A,10\n"
        ",Sem id,5\n"
        "3,,7\n"
        "4,D,1\n"
        "5,E,2\n"
    )
    store.fail_ids = {'5'}

    outcome = make_processor(content).process(LOCATOR).outcome

    assert outcome.total_rows == 5
    assert outcome.records_processed == 2
    assert outcome.records_rejected == 2
    assert outcome.records_failed == 1
    assert outcome.records_processed + outcome.records_rejected + outcome.records_failed == outcome.total_rows


def test_rejected_rows_never_reach_the_store(make_processor, store):
    result = make_processor("id,nome,preco\n,,10\n").process(LOCATOR)

    assert result.outcome.records_rejected == 1
    assert store.put_calls == []


def test_blank_lines_are_not_counted(make_processor):
    content = "\nid,nome\n\n1,A\n\n\n2,B\n   \n"

    outcome = make_processor(content).process(LOCATOR).outcome

    assert outcome.total_rows == 2
    assert outcome.records_processed == 2


def test_malformed_numbers_are_persisted_as_zero(make_processor, store):
    make_processor(SAMPLE).process(LOCATOR)

    record = next(r for r in store.put_calls if r.id == '3')
    assert record.price == Decimal('0')
    assert record.stock == 0
    assert record.category == DEFAULT_FILE_CATEGORY


def test_records_in_one_batch_have_distinct_keys(make_processor, store):
    content = "id,nome\n1,A\n1,A\n1,A\n"

    make_processor(content).process(LOCATOR)

    assert len(store.records) == 3
    assert len({(r.id, r.timestamp) for r in store.put_calls}) == 3


def test_provenance_is_recorded(make_processor, store):
    make_processor(SAMPLE).process(LOCATOR, request_id='req-123')

    record = store.put_calls[0]
    assert record.source.value == 'file'
    assert record.source_detail == KEY
    assert record.request_id == 'req-123'


def test_completion_notification(make_processor, notifier):
    result = make_processor(SAMPLE).process(LOCATOR)

    assert len(notifier.published) == 1
    published = notifier.published[0]
    assert published['subject'] == 'Data Processing Completed'
    assert published['attributes'] == {
        'event_type': 'processing_completed',
        'file_name': KEY,
        'records_count': '3',
    }
    message = published['message']
    assert message['event_type'] == 'DATA_PROCESSING_COMPLETED'
    assert message['batch_id'] == result.batch_id
    assert message['records_processed'] == 3
    assert message['records_failed'] == 0
    assert message['success_rate'] == '100.00%'


def test_notifier_failure_does_not_change_result(make_processor, store):
    failing = FakeNotifier(fail=True)

    result = make_processor(SAMPLE, notifier=failing).process(LOCATOR)

    assert result.succeeded
    assert result.outcome.records_processed == 3
    assert len(store.records) == 3


def test_unexpected_notifier_error_is_swallowed(make_processor):
    failing = FakeNotifier(error=RuntimeError("connection reset"))

    assert make_processor(SAMPLE, notifier=failing).process(LOCATOR).succeeded


def test_missing_object_fails_the_batch(store, notifier, clock):
    processor = BatchProcessor(FakeObjectSource(), store, notifier, clock=clock)

    result = processor.process(LOCATOR)

    assert not result.succeeded
    assert result.state == BatchState.FAILED
    assert result.error_kind == ErrorKind.SOURCE_UNAVAILABLE
    assert result.outcome is None
    assert store.put_calls == []
    assert notifier.published[0]['subject'] == 'Data Processing Failed'
    assert notifier.published[0]['message']['event_type'] == 'DATA_PROCESSING_FAILED'
    assert notifier.published[0]['message']['error_kind'] == 'source_unavailable'


def test_undecodable_object_fails_the_batch(make_processor, store):
    result = make_processor(b"id,nome\n1,\xff\xfe\n").process(LOCATOR)

    assert result.state == BatchState.FAILED
    assert result.error_kind == ErrorKind.SOURCE_UNAVAILABLE
    assert store.put_calls == []


def test_unexpected_read_error_fails_the_batch(store, notifier, clock):
    class BrokenSource(FakeObjectSource):
        def read(self, locator):
            raise RuntimeError("boom")

    result = BatchProcessor(BrokenSource(), store, notifier, clock=clock).process(LOCATOR)

    assert result.state == BatchState.FAILED
    assert result.error == 'boom'


def test_state_transitions(make_processor):
    result = make_processor(SAMPLE).process(LOCATOR)

    assert result.transitions == [
        BatchState.START,
        BatchState.DECODING,
        BatchState.PROCESSING,
        BatchState.AGGREGATING,
        BatchState.NOTIFYING,
        BatchState.DONE,
    ]


def test_failed_transitions(store, notifier, clock):
    result = BatchProcessor(FakeObjectSource(), store, notifier, clock=clock).process(LOCATOR)

    assert result.transitions == [BatchState.START, BatchState.DECODING, BatchState.FAILED]


def test_header_only_file_succeeds_with_zero_rows(make_processor, store):
    result = make_processor("id,nome,categoria,preco,estoque\n").process(LOCATOR)

    assert result.succeeded
    assert result.outcome.total_rows == 0
    assert result.to_response()['success_rate'] == '0.00%'
    assert store.put_calls == []


def test_success_response_body(make_processor, store):
    store.fail_ids = {'2'}
    content = SAMPLE + ",,,,\n"

    body = make_processor(content).process(LOCATOR).to_response()

    assert body == {
        'message': 'Processing completed successfully',
        'file': KEY,
        'records_processed': 2,
        'records_failed': 2,
        'records_rejected': 1,
        'total_records': 4,
        'success_rate': '50.00%',
    }


def test_failure_response_body(store, notifier, clock):
    body = BatchProcessor(FakeObjectSource(), store, notifier, clock=clock).process(LOCATOR).to_response()

    assert body['message'] == 'Processing failed'
    assert body['file'] == KEY
    assert 'Object not found' in body['error']


def test_each_batch_gets_its_own_id(make_processor):
    processor = make_processor(SAMPLE)

    assert processor.process(LOCATOR).batch_id != processor.process(LOCATOR).batch_id


def test_reprocessing_same_file_adds_new_records(make_processor, store, clock):
    processor = make_processor(SAMPLE)

    processor.process(LOCATOR)
    clock.advance(1000)
    processor.process(LOCATOR)

    assert len(store.records) == 6


def test_reject_event_announces_failure(store, notifier, clock):
    processor = BatchProcessor(FakeObjectSource(), store, notifier, clock=clock)

    batch_id = processor.reject_event(SourceUnavailableError('Event does not describe an S3 object'), 'req-7')

    message = notifier.published[0]['message']
    assert message['batch_id'] == batch_id
    assert message['event_type'] == 'DATA_PROCESSING_FAILED'
    assert message['error'] == 'Event does not describe an S3 object'
    assert message['request_id'] == 'req-7'
    assert message['bucket'] is None


def test_reject_event_tolerates_notifier_failure(store, clock):
    processor = BatchProcessor(FakeObjectSource(), store, FakeNotifier(fail=True), clock=clock)

    assert processor.reject_event(SourceUnavailableError('bad event'))


def test_oversized_numbers_do_not_cost_the_row(make_processor, store):
    content = "id,nome,preco,estoque\n1,Lapis,1e99999999,1e99999999\n"

    outcome = make_processor(content).process(LOCATOR).outcome

    assert outcome.records_processed == 1
    assert store.put_calls[0].price == Decimal('0')
    assert store.put_calls[0].stock == 0
