from __future__ import annotations
import json
import math
import uuid
import hashlib
import logging
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from datetime import datetime, timezone

import pandas as pd

from .errors import PersistenceError

logger = logging.getLogger(__name__)

BRAND_COLUMNS = ['id', 'name']
ZONE_COLUMNS = ['id', 'brand_id', 'name', 'countries', 'provinces', 'shopify_zone_id', 'updated_at']
RATE_COLUMNS = ['id', 'zone_id', 'name', 'price', 'min_order_amount', 'max_order_amount', 'conditions', 'shopify_rate_id', 'updated_at']

RUNS_LOG = Path('metadata/sync_runs.jsonl')


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z')


def sha256_json(data: Any) -> str:
    h = hashlib.sha256()
    h.update(json.dumps(data, sort_keys=True, ensure_ascii=False).encode('utf-8'))
    return h.hexdigest()


def save_raw(provider: str, resource: str, payload: Any, run_id: str, root: Path = Path('data/raw'), tag: Optional[str] = None) -> Path:
    ts = utc_now_iso().replace(':', '-').replace('.', '-')
    safe_tag = ''
    if tag:
        safe_tag = '_' + tag.replace(' ', '-').replace('/', '-').lower()
    out_dir = Path(root) / provider / resource
    out_dir.mkdir(parents=True, exist_ok=True)
    fname = f"{ts}_{run_id}{safe_tag}.json"
    fpath = out_dir / fname
    fpath.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding='utf-8')
    return fpath


def append_run_log(record: Dict[str, Any], path: Path = RUNS_LOG) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open('a', encoding='utf-8') as f:
        f.write(json.dumps(record, ensure_ascii=False) + '\n')


def _clean(value: Any) -> Any:
    if isinstance(value, float) and math.isnan(value):
        return None
    if hasattr(value, 'tolist'):
        return value.tolist()
    return value


class ShippingStore:
    """Brand, shipping zone and shipping rate tables behind one explicit handle.

    Rows live in memory keyed by internal id, with natural-key indexes on
    ``(brand_id, shopify_zone_id)`` and ``(zone_id, shopify_rate_id)``. When
    ``root`` is given the tables are loaded from and persisted to Parquet files
    there. Writes and persistence are serialized by a store-wide lock, so one
    handle can be shared across request threads.
    """

    def __init__(self, root: Optional[Path] = None):
        self.root = Path(root) if root else None
        self._lock = threading.RLock()
        self._brands: Dict[str, Dict[str, Any]] = {}
        self._zones: Dict[str, Dict[str, Any]] = {}
        self._rates: Dict[str, Dict[str, Any]] = {}
        self._zone_keys: Dict[Tuple[str, str], str] = {}
        self._rate_keys: Dict[Tuple[str, str], str] = {}
        if self.root is not None:
            self.load()

    # brands

    def add_brand(self, brand_id: str, name: Optional[str] = None) -> Dict[str, Any]:
        row = {'id': str(brand_id), 'name': name}
        with self._lock:
            self._brands[row['id']] = row
        return dict(row)

    def get_brand(self, brand_id: str) -> Optional[Dict[str, Any]]:
        row = self._brands.get(str(brand_id))
        return dict(row) if row else None

    # zones

    def find_zone(self, brand_id: str, shopify_zone_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            zid = self._zone_keys.get((str(brand_id), str(shopify_zone_id)))
            return dict(self._zones[zid]) if zid else None

    def insert_zone(self, data: Dict[str, Any]) -> Dict[str, Any]:
        row = self._zone_row(data)
        key = (row['brand_id'], row['shopify_zone_id'])
        with self._lock:
            if key in self._zone_keys:
                raise PersistenceError(f'duplicate zone {key}')
            row['id'] = uuid.uuid4().hex
            self._zones[row['id']] = row
            self._zone_keys[key] = row['id']
        return dict(row)

    def update_zone(self, zone_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        with self._lock:
            current = self._zones.get(zone_id)
            if current is None:
                raise PersistenceError(f'zone {zone_id} does not exist')
            row = self._zone_row({**current, **data})
            if (row['brand_id'], row['shopify_zone_id']) != (current['brand_id'], current['shopify_zone_id']):
                raise PersistenceError(f'zone {zone_id} natural key cannot change')
            row['id'] = zone_id
            self._zones[zone_id] = row
        return dict(row)

    def list_zones(self, brand_id: Optional[str] = None) -> List[Dict[str, Any]]:
        with self._lock:
            return [dict(z) for z in self._zones.values() if brand_id is None or z['brand_id'] == str(brand_id)]

    # rates

    def find_rate(self, zone_id: str, shopify_rate_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            rid = self._rate_keys.get((str(zone_id), str(shopify_rate_id)))
            return dict(self._rates[rid]) if rid else None

    def insert_rate(self, data: Dict[str, Any]) -> Dict[str, Any]:
        row = self._rate_row(data)
        key = (row['zone_id'], row['shopify_rate_id'])
        with self._lock:
            if key in self._rate_keys:
                raise PersistenceError(f'duplicate rate {key}')
            row['id'] = uuid.uuid4().hex
            self._rates[row['id']] = row
            self._rate_keys[key] = row['id']
        return dict(row)

    def update_rate(self, rate_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        with self._lock:
            current = self._rates.get(rate_id)
            if current is None:
                raise PersistenceError(f'rate {rate_id} does not exist')
            row = self._rate_row({**current, **data})
            if (row['zone_id'], row['shopify_rate_id']) != (current['zone_id'], current['shopify_rate_id']):
                raise PersistenceError(f'rate {rate_id} natural key cannot change')
            row['id'] = rate_id
            self._rates[rate_id] = row
        return dict(row)

    def list_rates(self, zone_id: Optional[str] = None) -> List[Dict[str, Any]]:
        with self._lock:
            return [dict(r) for r in self._rates.values() if zone_id is None or r['zone_id'] == str(zone_id)]

    # validation

    def _zone_row(self, data: Dict[str, Any]) -> Dict[str, Any]:
        if not data.get('brand_id') or not data.get('shopify_zone_id'):
            raise PersistenceError('zone requires brand_id and shopify_zone_id')
        return {
            'id': data.get('id'),
            'brand_id': str(data['brand_id']),
            'name': data.get('name'),
            'countries': list(data.get('countries') or []),
            'provinces': list(data.get('provinces') or []),
            'shopify_zone_id': str(data['shopify_zone_id']),
            'updated_at': data.get('updated_at') or utc_now_iso(),
        }

    def _rate_row(self, data: Dict[str, Any]) -> Dict[str, Any]:
        if not data.get('zone_id') or not data.get('shopify_rate_id'):
            raise PersistenceError('rate requires zone_id and shopify_rate_id')
        if str(data['zone_id']) not in self._zones:
            raise PersistenceError(f"rate references unknown zone {data['zone_id']}")
        price = data.get('price')
        if price is None or price < 0:
            raise PersistenceError(f'rate price must be >= 0, got {price!r}')
        return {
            'id': data.get('id'),
            'zone_id': str(data['zone_id']),
            'name': data.get('name'),
            'price': float(price),
            'min_order_amount': data.get('min_order_amount'),
            'max_order_amount': data.get('max_order_amount'),
            'conditions': list(data.get('conditions') or []),
            'shopify_rate_id': str(data['shopify_rate_id']),
            'updated_at': data.get('updated_at') or utc_now_iso(),
        }

    # dataframe views / persistence

    def brands_frame(self) -> pd.DataFrame:
        with self._lock:
            rows = list(self._brands.values())
        return pd.DataFrame(rows, columns=BRAND_COLUMNS)

    def zones_frame(self) -> pd.DataFrame:
        with self._lock:
            rows = list(self._zones.values())
        return pd.DataFrame(rows, columns=ZONE_COLUMNS)

    def rates_frame(self) -> pd.DataFrame:
        with self._lock:
            rows = list(self._rates.values())
        df = pd.DataFrame(rows, columns=RATE_COLUMNS)
        # conditions are persisted as a JSON document
        df['conditions'] = [json.dumps(c, ensure_ascii=False) for c in df['conditions']]
        return df

    def _path(self, table: str) -> Path:
        if self.root is None:
            raise PersistenceError('store has no root directory')
        return self.root / f'{table}.parquet'

    def load(self) -> None:
        with self._lock:
            for table in ('brands', 'shipping_zones', 'shipping_rates'):
                path = self._path(table)
                if not path.exists():
                    continue
                records = [{k: _clean(v) for k, v in r.items()} for r in pd.read_parquet(path).to_dict('records')]
                if table == 'brands':
                    self._brands = {r['id']: r for r in records}
                elif table == 'shipping_zones':
                    self._zones = {r['id']: r for r in records}
                    self._zone_keys = {(r['brand_id'], r['shopify_zone_id']): r['id'] for r in records}
                else:
                    for r in records:
                        r['conditions'] = json.loads(r['conditions']) if r.get('conditions') else []
                    self._rates = {r['id']: r for r in records}
                    self._rate_keys = {(r['zone_id'], r['shopify_rate_id']): r['id'] for r in records}
        logger.info('Loaded store from %s: %d brands, %d zones, %d rates',
                    self.root, len(self._brands), len(self._zones), len(self._rates))

    def persist(self) -> None:
        if self.root is None:
            return
        with self._lock:
            self.root.mkdir(parents=True, exist_ok=True)
            self.brands_frame().to_parquet(self._path('brands'), index=False)
            self.zones_frame().to_parquet(self._path('shipping_zones'), index=False)
            self.rates_frame().to_parquet(self._path('shipping_rates'), index=False)
