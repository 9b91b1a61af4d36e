from __future__ import annotations
import logging
from typing import Any, Dict, List, Tuple

logger = logging.getLogger(__name__)

# (topic, callback path) pairs registered for every connected shop
WEBHOOK_CATALOGUE: List[Tuple[str, str]] = [
    ('orders/create', '/api/webhooks/orders'),
    ('orders/updated', '/api/webhooks/orders'),
    ('orders/paid', '/api/webhooks/orders'),
    ('orders/cancelled', '/api/webhooks/orders'),
    ('products/create', '/api/webhooks/products'),
    ('products/update', '/api/webhooks/products'),
    ('products/delete', '/api/webhooks/products'),
    ('inventory_levels/update', '/api/webhooks/inventory'),
]


def provision_all(client: Any, base_url: str, catalogue: List[Tuple[str, str]] | None = None) -> List[Dict[str, Any]]:
    """Register each catalogue webhook independently against ``client``.

    Failures are logged and reported per topic; they never stop the remaining
    registrations. Existing subscriptions are not checked, so calling this twice
    can create duplicates upstream.
    """
    base = base_url.rstrip('/')
    results: List[Dict[str, Any]] = []
    for topic, path in (catalogue or WEBHOOK_CATALOGUE):
        address = base + path
        try:
            webhook = client.create_webhook(topic, address, format='json')
        except Exception as e:
            logger.exception('Failed to create webhook %s: %s', topic, e)
            results.append({'topic': topic, 'success': False, 'error': str(e)})
            continue
        logger.info('Created webhook: %s', topic)
        results.append({'topic': topic, 'success': True, 'webhook': webhook})
    return results


def summarize(results: List[Dict[str, Any]]) -> Dict[str, int]:
    ok = sum(1 for r in results if r.get('success'))
    return {'succeeded': ok, 'failed': len(results) - ok}
