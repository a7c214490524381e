"""
Tests for the command-line interface using the SQLite store.
"""

import json
import sys

import pytest
import structlog

from data_processing import cli
from data_processing.database.sqlite_store import SQLiteRecordStore
from data_processing.errors import InvalidPatchError

SAMPLE = (
    "id,nome,categoria,preco,estoque\n"
    "1,Notebook,Eletronicos,3500.00,15\n"
    "2,Mouse,,abc,10\n"
    ",Sem id,,1,1\n"
)


@pytest.fixture
def local_env(clean_env, tmp_path, monkeypatch):
    db_path = tmp_path / 'records.db'
    clean_env.setenv('STORE_BACKEND', 'sqlite')
    clean_env.setenv('SQLITE_DB_PATH', str(db_path))
    clean_env.setenv('NOTIFIER_BACKEND', 'log')
    clean_env.setenv('LOCAL_DATA_DIR', str(tmp_path))
    monkeypatch.setattr(cli.IngestionLogger, 'setup_logging', staticmethod(lambda *args, **kwargs: None))
    # stdout carries only command output
    structlog.configure(logger_factory=structlog.PrintLoggerFactory(sys.stderr))
    yield db_path
    structlog.reset_defaults()


def read_json(capsys):
    return json.loads(capsys.readouterr().out)


def test_parse_assignments():
    assert cli.parse_assignments(['price=10', ' name = Mesa ']) == {'price': '10', 'name': 'Mesa'}

    with pytest.raises(InvalidPatchError):
        cli.parse_assignments(['price'])


def test_process_file(local_env, tmp_path, capsys):
    csv_path = tmp_path / 'produtos.csv'
    csv_path.write_text(SAMPLE, encoding='utf-8')

    exit_code = cli.main(['process-file', str(csv_path)])

    body = read_json(capsys)
    assert exit_code == 0
    assert body['records_processed'] == 2
    assert body['records_rejected'] == 1
    assert body['total_records'] == 3
    assert len(SQLiteRecordStore(str(local_env)).scan()) == 2


def test_process_missing_file_fails(local_env, tmp_path, capsys):
    exit_code = cli.main(['process-file', str(tmp_path / 'missing.csv')])

    assert exit_code == 1
    assert read_json(capsys)['message'] == 'Processing failed'


def test_create_record(local_env, capsys):
    exit_code = cli.main(['create-record', '{"nome": "Widget", "preco": 5}'])

    body = read_json(capsys)
    assert exit_code == 0
    assert body['statusCode'] == 201
    assert body['data']['source_detail'] == 'cli'


def test_create_record_validation_error(local_env, capsys):
    assert cli.main(['create-record', '{"preco": 5}']) == 1
    assert read_json(capsys)['error'] == 'Validation Error'


def test_get_update_delete(local_env, tmp_path, capsys):
    store = SQLiteRecordStore(str(local_env))
    cli.main(['create-record', '{"id": "sku-1", "nome": "Mesa"}'])
    capsys.readouterr()
    timestamp = str(store.query_by_id('sku-1')[0].timestamp)

    assert cli.main(['get', 'sku-1', timestamp]) == 0
    assert read_json(capsys)['name'] == 'Mesa'

    assert cli.main(['query', 'sku-1']) == 0
    assert len(read_json(capsys)) == 1

    assert cli.main(['update', 'sku-1', timestamp, '--set', 'price=99.90', '--set', 'category=Moveis']) == 0
    updated = read_json(capsys)
    assert updated['price'] == 99.9
    assert updated['category'] == 'Moveis'

    assert cli.main(['delete', 'sku-1', timestamp]) == 0
    capsys.readouterr()
    assert cli.main(['get', 'sku-1', timestamp]) == 1


def test_update_rejects_key_fields(local_env, capsys):
    assert cli.main(['update', 'sku-1', '1', '--set', 'id=other']) == 1
    assert 'Key fields' in capsys.readouterr().err


def test_scan(local_env, capsys):
    cli.main(['create-record', '{"nome": "A"}'])
    cli.main(['create-record', '{"nome": "B"}'])
    capsys.readouterr()

    assert cli.main(['scan', '--limit', '1']) == 0
    assert len(read_json(capsys)) == 1


def test_init_store(local_env, capsys):
    assert cli.main(['init-store']) == 0
    assert 'sqlite' in capsys.readouterr().out


def test_generate_csv(local_env, tmp_path):
    output = tmp_path / 'generated' / 'produtos.csv'

    assert cli.main(['generate-csv', '--output', str(output), '--count', '5', '--seed', '1']) == 0
    assert len(output.read_text(encoding='utf-8').splitlines()) == 6


def test_invalid_configuration_exits_with_error(local_env, clean_env, capsys):
    clean_env.setenv('STORE_BACKEND', 'mongodb')

    assert cli.main(['scan']) == 1
    assert 'Invalid configuration' in capsys.readouterr().err
