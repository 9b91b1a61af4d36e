from __future__ import annotations
import random
from typing import List, Dict, Any, Optional
from .pagination import MAX_PAGES, FetchResult, PaginatedResourceFetcher

_RANDOM = random.Random()


def seed_mock(seed: Optional[int] = None) -> None:
    if seed is not None:
        _RANDOM.seed(seed)

ZONES = [
    ('Domestic', [('US', ['CA', 'NY', 'TX'])]),
    ('North America', [('US', []), ('CA', ['ON', 'QC', 'BC'])]),
    ('Europe', [('DE', []), ('FR', []), ('IT', []), ('ES', [])]),
    ('Australia', [('AU', ['NSW', 'VIC'])]),
    ('Rest of world', [(None, [])]),
]
RATE_NAMES = ['Standard', 'Express', 'Free Standard Shipping', 'International Economy', 'Priority']
CURRENCIES = ["USD", "EUR", "GBP", "AUD"]
ADJECTIVES = ["Smart", "Eco", "Ultra", "Mini", "Pro"]
NOUNS = ["Speaker", "Lamp", "Bottle", "Backpack", "Watch"]


def _country(code: Optional[str], provinces: List[str]) -> Dict[str, Any]:
    return {
        'code': {'countryCode': code, 'restOfWorld': code is None},
        'provinces': [{'name': p, 'code': p} for p in provinces],
    }


def _money_condition(operator: str, amount: float, currency: str) -> Dict[str, Any]:
    return {
        'field': 'TOTAL_PRICE',
        'operator': operator,
        'conditionCriteria': {'__typename': 'MoneyV2', 'amount': f"{amount:.2f}", 'currencyCode': currency},
    }


def _weight_condition(operator: str, value: float) -> Dict[str, Any]:
    return {
        'field': 'WEIGHT',
        'operator': operator,
        'conditionCriteria': {'__typename': 'Weight', 'unit': 'KILOGRAMS', 'value': value},
    }


def generate_mock_method(zone_idx: int, rate_idx: int, currency: str) -> Dict[str, Any]:
    name = _RANDOM.choice(RATE_NAMES)
    conditions: List[Dict[str, Any]] = []
    roll = _RANDOM.random()
    if roll < 0.3:
        conditions.append(_money_condition('GREATER_THAN_OR_EQUAL_TO', _RANDOM.choice([50.0, 100.0, 150.0]), currency))
    elif roll < 0.45:
        conditions.append(_money_condition('LESS_THAN_OR_EQUAL_TO', 99.99, currency))
    elif roll < 0.6:
        conditions.append(_weight_condition('GREATER_THAN_OR_EQUAL_TO', _RANDOM.choice([5.0, 20.0, 30.0])))
    return {
        'id': f"gid://shopify/DeliveryMethodDefinition/{zone_idx + 1}{rate_idx + 1:02d}",
        'active': _RANDOM.random() > 0.1,
        'name': name,
        'description': None,
        'rateProvider': {'price': {'amount': f"{round(_RANDOM.uniform(4.0, 40.0), 2):.2f}", 'currencyCode': currency}},
        'methodConditions': conditions,
    }


def generate_mock_delivery_profiles(n_zones: int = 3, rates_per_zone: int = 2) -> Dict[str, Any]:
    """Synthetic ``deliveryProfiles`` GraphQL payload shaped like the Admin API response."""
    zone_edges = []
    for i in range(n_zones):
        name, countries = ZONES[i % len(ZONES)]
        currency = _RANDOM.choice(CURRENCIES)
        methods = [generate_mock_method(i, r, currency) for r in range(rates_per_zone)]
        zone_edges.append({
            'node': {
                'zone': {
                    'id': f"gid://shopify/DeliveryZone/{i + 1}",
                    'name': name,
                    'countries': [_country(code, provs) for code, provs in countries],
                },
                'methodDefinitions': {'edges': [{'node': m} for m in methods]},
            }
        })
    profile = {
        'id': 'gid://shopify/DeliveryProfile/1',
        'name': 'General profile',
        'default': True,
        'profileLocationGroups': [{
            'locationGroup': {'id': 'gid://shopify/DeliveryLocationGroup/1'},
            'locationGroupZones': {'edges': zone_edges},
        }],
    }
    return {'data': {'deliveryProfiles': {'edges': [{'node': profile}]}}}


def generate_mock_products(n: int = 20, price_min: float = 5.0, price_max: float = 300.0) -> List[Dict[str, Any]]:
    items: List[Dict[str, Any]] = []
    for i in range(n):
        currency = _RANDOM.choice(CURRENCIES)
        items.append({
            'id': 1000 + i + 1,
            'title': f"{_RANDOM.choice(ADJECTIVES)} {_RANDOM.choice(NOUNS)}",
            'status': 'active',
            'variants': [{'id': 5000 + i + 1, 'price': str(round(_RANDOM.uniform(price_min, price_max), 2)), 'currency': currency}],
        })
    return items


class MockShopifyClient:
    """Offline stand-in exposing the ShopifyClient surface used by the sync pipeline."""

    def __init__(self, shop_domain: str = 'mock-shop.myshopify.com', n_zones: int = 3, rates_per_zone: int = 2, n_products: int = 20):
        self.shop_domain = shop_domain
        self._profiles = generate_mock_delivery_profiles(n_zones, rates_per_zone)
        self._products = generate_mock_products(n_products)
        self._next_webhook_id = 1

    def is_legacy_mode(self) -> bool:
        return True

    def get_delivery_profiles(self) -> Dict[str, Any]:
        return self._profiles

    def list_products(self, limit: int = 50, since_id: Optional[str] = None, status: Optional[str] = None) -> List[Dict[str, Any]]:
        start = 0
        if since_id is not None:
            start = next((i + 1 for i, p in enumerate(self._products) if str(p['id']) == str(since_id)), len(self._products))
        return self._products[start:start + limit]

    def fetch_all_products(self, page_size: int = 50, status: Optional[str] = 'active', max_pages: Optional[int] = None) -> FetchResult:
        fetcher = PaginatedResourceFetcher(lambda limit, since_id: self.list_products(limit, since_id, status),
                                           max_pages=MAX_PAGES if max_pages is None else max_pages)
        return fetcher.fetch_all(page_size)

    def create_webhook(self, topic: str, address: str, format: str = 'json') -> Dict[str, Any]:
        webhook = {'id': self._next_webhook_id, 'topic': topic, 'address': address, 'format': format}
        self._next_webhook_id += 1
        return webhook
