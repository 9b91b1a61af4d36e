"""Shipping sync orchestration: fetch the delivery graph, parse it, price it, upsert it.

Everything runs sequentially inside one call. Each call receives its own client
(one throttle per credential) and an explicit store handle.
"""
from __future__ import annotations
import logging
import threading
from typing import Any, Callable, Dict, Optional

from .delivery_graph import parse_delivery_profiles
from .errors import NotFoundError, ValidationError
from .shipping_rules import DEFAULT_POLICY, FreeShippingPolicy
from .shipping_sync import SyncReport, UpsertSynchronizer
from .storage import ShippingStore

logger = logging.getLogger(__name__)

_brand_locks: Dict[str, threading.Lock] = {}
_brand_locks_guard = threading.Lock()


def brand_lock(brand_id: str) -> threading.Lock:
    """Per-brand lock serializing concurrent syncs of the same brand in this process.

    Locks are kept for the life of the process, one per brand id ever synced.
    """
    with _brand_locks_guard:
        lock = _brand_locks.get(brand_id)
        if lock is None:
            lock = _brand_locks[brand_id] = threading.Lock()
        return lock


def require_params(**params: Any) -> None:
    missing = [name for name, value in params.items() if not value]
    if missing:
        raise ValidationError('Missing required parameters: ' + ', '.join(missing))


def sync_shipping(client: Any, store: ShippingStore, brand_id: str, policy: FreeShippingPolicy = DEFAULT_POLICY,
                  raw_sink: Optional[Callable[[Dict[str, Any]], None]] = None) -> SyncReport:
    """Run one full shipping sync for ``brand_id``.

    Raises ``NotFoundError`` for an unknown brand, client errors for upstream
    failures (GraphQL ``errors[]`` included) and ``StructuralError`` when the
    response lacks ``deliveryProfiles``. Per-node and per-record problems are
    absorbed into the returned report.
    """
    require_params(brand_id=brand_id)
    if store.get_brand(brand_id) is None:
        logger.error('Brand not found: %s', brand_id)
        raise NotFoundError('Brand not found in database')

    with brand_lock(str(brand_id)):
        legacy = client.is_legacy_mode()
        logger.info('Syncing shipping for brand %s on %s (legacy mode profiles: %s)',
                    brand_id, getattr(client, 'shop_domain', '?'), legacy)
        payload = client.get_delivery_profiles()
        if raw_sink is not None:
            raw_sink(payload)
        parsed = parse_delivery_profiles(payload)
        report = SyncReport(skipped=list(parsed.skipped))
        UpsertSynchronizer(store, policy).sync(str(brand_id), parsed.zones, report)
        store.persist()
    return report
