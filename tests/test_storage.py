import json

import pytest

from visatrack.models import Stay
from visatrack.storage import load_stays, record_to_stay, save_stays


def test_load_json_export_with_camel_case_keys(tmp_path):
    path = tmp_path / 'stays.json'
    path.write_text(json.dumps([
        {'id': 7, 'countryCode': 'KR', 'entryDate': '2024-03-01', 'exitDate': '2024-03-10', 'entryCity': 'ICN',
         'visaType': 'visa-free', 'purpose': 'tourism'},
        {'id': '8', 'countryCode': 'JP', 'entryDate': '2024-03-11', 'exitDate': None},
    ]), encoding='utf-8')

    stays = load_stays(path)

    assert stays[0] == Stay(id='7', country_code='KR', entry_date='2024-03-01', exit_date='2024-03-10',
                            entry_city='ICN', visa_type='visa-free')
    assert stays[1].is_ongoing


def test_load_csv(tmp_path):
    path = tmp_path / 'stays.csv'
    path.write_text('id,country_code,entry_date,exit_date,notes\n'
                    '1,TH,2024-01-01,,beach\n'
                    ',VN,2024-02-01,2024-02-10,\n', encoding='utf-8')

    stays = load_stays(path)

    assert stays[0].is_ongoing
    assert stays[0].notes == 'beach'
    assert stays[1].id
    assert stays[1].exit_date == '2024-02-10'


def test_malformed_records_are_kept_for_the_engine():
    stay = record_to_stay({'entryDate': 20240301})
    assert stay.country_code == ''
    assert stay.entry_date == '20240301'


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_stays(tmp_path / 'nope.json')


def test_save_and_reload(tmp_path):
    stays = [
        Stay(id='1', country_code='US', entry_date='2024-05-01', exit_date='2024-05-04', auto_resolved=True,
             original_exit_date='2024-05-10', resolution_reason='trimmed'),
    ]
    path = save_stays(tmp_path / 'resolved.json', stays)
    assert load_stays(path) == stays
