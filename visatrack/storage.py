"""Reading and writing stay files (JSON or CSV exports of the travel log).

Records are converted as-is: bad dates are not rejected here, the engine
skips and counts them. Keys may be snake_case or the camelCase used by the
web app's export.
"""
import csv
import json
import logging
import re
import uuid
from dataclasses import asdict, fields
from pathlib import Path
from typing import Iterable

import dacite

from .models import Stay

_TEXT_FIELDS = [f.name for f in fields(Stay) if f.name != 'auto_resolved']
_CAMEL_BOUNDARY = re.compile(r'(?<!^)(?=[A-Z])')


def _snake_case(key: str) -> str:
    return _CAMEL_BOUNDARY.sub('_', key.strip()).lower()


def _as_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {'1', 'true', 'yes'}
    return bool(value)


def record_to_stay(raw: dict) -> Stay:
    record = {_snake_case(k): v for k, v in raw.items() if isinstance(k, str)}
    data: dict = {}
    for name in _TEXT_FIELDS:
        value = record.get(name)
        if value is None or value == '':
            continue
        data[name] = str(value)
    data['id'] = data.get('id') or uuid.uuid4().hex
    data.setdefault('country_code', '')
    data.setdefault('entry_date', None)
    data['auto_resolved'] = _as_bool(record.get('auto_resolved'))
    return dacite.from_dict(data_class=Stay, data=data)


def _read_records(path: Path) -> list[dict]:
    if path.suffix.lower() == '.csv':
        with open(path, 'rt', encoding='utf-8', newline='') as f:
            return list(csv.DictReader(f))
    with open(path, 'rt', encoding='utf-8') as f:
        loaded_data = json.load(f)
    if isinstance(loaded_data, dict):
        loaded_data = loaded_data.get('stays', [])
    if not isinstance(loaded_data, list):
        raise ValueError(f"{path} must contain a list of stays")
    return [r for r in loaded_data if isinstance(r, dict)]


def load_stays(path: Path | str) -> list[Stay]:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Stays file {path} not found.")
    stays = [record_to_stay(record) for record in _read_records(path)]
    logging.info(f"Loaded {len(stays)} stays from {path}")
    return stays


def save_stays(path: Path | str, stays: Iterable[Stay]) -> Path:
    path = Path(path)
    payload = {'stays': [asdict(stay) for stay in stays]}
    path.write_text(json.dumps(payload, indent=2, default=str), encoding='utf-8')
    logging.info(f"Saved {len(payload['stays'])} stays to {path}")
    return path
