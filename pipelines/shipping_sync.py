from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from .delivery_graph import LocationGroupZone, MethodDefinition, SkipRecord
from .shipping_rules import DEFAULT_POLICY, FreeShippingPolicy, infer_rate
from .storage import ShippingStore, utc_now_iso

logger = logging.getLogger(__name__)

DEFAULT_ZONE_NAME = 'Unknown Zone'
DEFAULT_RATE_NAME = 'Shipping Rate'


@dataclass
class SyncReport:
    zones_created: int = 0
    zones_updated: int = 0
    zones_failed: int = 0
    rates_created: int = 0
    rates_updated: int = 0
    rates_failed: int = 0
    free_rates: int = 0
    failures: List[Dict[str, Any]] = field(default_factory=list)
    skipped: List[SkipRecord] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        skip_reasons: Dict[str, int] = {}
        for s in self.skipped:
            key = f'{s.level}: {s.reason}'
            skip_reasons[key] = skip_reasons.get(key, 0) + 1
        return {
            'zones_created': self.zones_created,
            'zones_updated': self.zones_updated,
            'zones_failed': self.zones_failed,
            'rates_created': self.rates_created,
            'rates_updated': self.rates_updated,
            'rates_failed': self.rates_failed,
            'free_rates': self.free_rates,
            'skipped': skip_reasons,
            'failures': list(self.failures),
        }


class UpsertSynchronizer:
    """Reconcile parsed zones/rates against the store by Shopify id.

    Rows are updated in place when the natural key already exists, otherwise
    inserted, so internal ids survive resyncs. A failing record is logged and
    reported; the pass moves on. Rows missing from the upstream payload are left
    as they are.
    """

    def __init__(self, store: ShippingStore, policy: FreeShippingPolicy = DEFAULT_POLICY):
        self.store = store
        self.policy = policy

    def sync(self, brand_id: str, zones: Iterable[LocationGroupZone], report: Optional[SyncReport] = None) -> SyncReport:
        report = report or SyncReport()
        for zone in zones:
            zone_row = self.upsert_zone(brand_id, zone, report)
            if zone_row is None:
                continue
            for method in zone.methods:
                self.upsert_rate(zone_row['id'], method, report)
        logger.info('Shipping sync for brand %s: %s', brand_id, {k: v for k, v in report.to_dict().items() if k not in ('failures', 'skipped')})
        return report

    def upsert_zone(self, brand_id: str, zone: LocationGroupZone, report: SyncReport) -> Optional[Dict[str, Any]]:
        data = {
            'brand_id': brand_id,
            'name': zone.name or DEFAULT_ZONE_NAME,
            'countries': zone.countries,
            'provinces': zone.provinces,
            'shopify_zone_id': zone.external_id,
            'updated_at': utc_now_iso(),
        }
        try:
            existing = self.store.find_zone(brand_id, zone.external_id)
            if existing:
                row = self.store.update_zone(existing['id'], data)
                report.zones_updated += 1
            else:
                row = self.store.insert_zone(data)
                report.zones_created += 1
        except Exception as e:
            logger.error('Error upserting shipping zone %s: %s', zone.external_id, e)
            report.zones_failed += 1
            report.failures.append({'kind': 'zone', 'ref': zone.external_id, 'error': str(e)})
            return None
        logger.debug('Upserted shipping zone %s -> %s', zone.external_id, row['id'])
        return row

    def upsert_rate(self, zone_id: str, method: MethodDefinition, report: SyncReport) -> Optional[Dict[str, Any]]:
        inferred = infer_rate(method, self.policy)
        data = {
            'zone_id': zone_id,
            'name': method.name or DEFAULT_RATE_NAME,
            'price': inferred.price,
            'min_order_amount': inferred.min_order_amount,
            'max_order_amount': inferred.max_order_amount,
            'conditions': method.raw_conditions,
            'shopify_rate_id': method.external_id,
            'updated_at': utc_now_iso(),
        }
        try:
            existing = self.store.find_rate(zone_id, method.external_id)
            if existing:
                row = self.store.update_rate(existing['id'], data)
                report.rates_updated += 1
            else:
                row = self.store.insert_rate(data)
                report.rates_created += 1
        except Exception as e:
            logger.error('Error upserting shipping rate %s: %s', method.external_id, e)
            report.rates_failed += 1
            report.failures.append({'kind': 'rate', 'ref': method.external_id, 'error': str(e)})
            return None
        if inferred.free_shipping:
            report.free_rates += 1
        return row
