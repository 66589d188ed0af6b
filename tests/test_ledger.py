import json
import os
from unittest.mock import patch

import pytest

from manifest_unlock.errors import DefinitiveNotFound, LedgerIOError
from manifest_unlock.ledger import InstalledFile, InstalledRecord, Ledger, normalize_appid


def _record(appid, name=None, paths=()):
    files = [InstalledFile(p, os.path.splitext(p)[1].lstrip('.')) for p in paths]
    return InstalledRecord(appid, name, files)


def test_missing_storage_lists_empty(tmp_path):
    assert Ledger(tmp_path / 'nope' / 'installed.json').list() == []


@pytest.mark.parametrize('content', ['{not json', '{"id": "1"}', '"text"', ''])
def test_corrupt_storage_lists_empty(tmp_path, content):
    path = tmp_path / 'installed.json'
    path.write_text(content)
    assert Ledger(path).list() == []


def test_upsert_then_list_has_one_record(ledger):
    ledger.upsert(_record('570', 'Dota 2', ['/x/570.lua']))
    records = ledger.list()
    assert [r.appid for r in records] == ['570']


def test_upsert_is_idempotent_by_id(ledger):
    ledger.upsert(_record('570', 'First', ['/x/a.lua']))
    ledger.upsert(_record('10', 'Other', ['/x/b.lua']))
    previous = ledger.upsert(_record('570', 'Second', ['/x/c.manifest']))

    assert previous.name == 'First'
    records = ledger.list()
    assert [r.appid for r in records] == ['10', '570']
    assert records[1].name == 'Second'
    assert records[1].files == [InstalledFile('/x/c.manifest', 'manifest')]


def test_round_trip_preserves_records(tmp_path):
    path = tmp_path / 'installed.json'
    original = [
        _record('570', 'Dota 2', ['/s/570.lua', '/d/571_1.manifest']),
        _record('730', None, ['/s/730.vdf']),
    ]
    writer = Ledger(path)
    for record in original:
        writer.upsert(record)
    loaded = Ledger(path).list()
    assert loaded == original
    assert loaded[1].name == '730'


def test_persisted_document_shape(ledger):
    ledger.upsert(_record('570', 'Dota 2', ['/s/570.lua']))
    with open(ledger.path, encoding='utf-8') as f:
        doc = json.load(f)
    assert doc == [{
        'id': '570',
        'name': 'Dota 2',
        'files': [{'path': '/s/570.lua', 'type': 'lua'}],
        'installedAt': doc[0]['installedAt'],
    }]
    assert doc[0]['installedAt'].endswith('Z')


def test_reads_legacy_app_id_key(tmp_path, write_json):
    path = write_json(tmp_path / 'installed.json', [
        {'appId': '440', 'name': 'TF2', 'files': [{'path': '/s/440.lua', 'type': 'lua'}, 'junk'],
         'installedAt': '2024-01-01T00:00:00.000Z'},
        {'name': 'no id'},
    ])
    records = Ledger(path).list()
    assert len(records) == 1
    assert records[0].appid == '440'
    assert records[0].files == [InstalledFile('/s/440.lua', 'lua')]
    assert records[0].installed_at == '2024-01-01T00:00:00.000Z'


def test_remove_unknown_id_fails_and_leaves_ledger(ledger):
    ledger.upsert(_record('570', 'Dota 2', ['/s/570.lua']))
    with open(ledger.path, 'rb') as f:
        before = f.read()
    with pytest.raises(DefinitiveNotFound, match='not found'):
        ledger.remove('999')
    with open(ledger.path, 'rb') as f:
        assert f.read() == before


def test_remove_with_missing_file(tmp_path, ledger):
    paths = [tmp_path / 'a.lua', tmp_path / 'b.vdf', tmp_path / 'c.manifest']
    for p in paths:
        p.write_text('x')
    paths[1].unlink()
    ledger.upsert(_record('570', 'Dota 2', [str(p) for p in paths]))
    ledger.upsert(_record('10', 'Keep', [str(tmp_path / 'keep.lua')]))

    deleted = ledger.remove('570')

    assert sorted(deleted) == sorted([str(paths[0]), str(paths[2])])
    assert not any(p.exists() for p in paths)
    assert [r.appid for r in ledger.list()] == ['10']


def test_write_failure_propagates(ledger):
    with patch('manifest_unlock.ledger.os.replace', side_effect=OSError('disk full')):
        with pytest.raises(LedgerIOError):
            ledger.upsert(_record('1', 'x', ['/a.lua']))
    assert ledger.list() == []
    leftovers = [n for n in os.listdir(os.path.dirname(ledger.path)) if n.startswith('.installed-')]
    assert leftovers == []


@pytest.mark.parametrize('raw,expected', [('570', '570'), (' 10 ', '10'), (730, '730')])
def test_normalize_appid_accepts_digits(raw, expected):
    assert normalize_appid(raw) == expected


@pytest.mark.parametrize('raw', ['', None, '..', '../570', '5 7', '²', '-1', '1.0'])
def test_normalize_appid_rejects_everything_else(raw):
    with pytest.raises(ValueError):
        normalize_appid(raw)
