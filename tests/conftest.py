from typing import Any, Dict, List, Optional

import pytest

from pipelines.storage import ShippingStore


def money(operator: str, amount: str) -> Dict[str, Any]:
    return {'field': 'TOTAL_PRICE', 'operator': operator,
            'conditionCriteria': {'__typename': 'MoneyV2', 'amount': amount, 'currencyCode': 'USD'}}


def weight(operator: str, value: float) -> Dict[str, Any]:
    return {'field': 'WEIGHT', 'operator': operator,
            'conditionCriteria': {'__typename': 'Weight', 'unit': 'KILOGRAMS', 'value': value}}


def method(mid: str, name: str, price: Optional[str], conditions: Optional[List[Dict[str, Any]]] = None, active: bool = True) -> Dict[str, Any]:
    node: Dict[str, Any] = {'id': mid, 'active': active, 'name': name, 'description': None,
                            'rateProvider': {}, 'methodConditions': conditions or []}
    if price is not None:
        node['rateProvider'] = {'price': {'amount': price, 'currencyCode': 'USD'}}
    return node


def zone(zid: str, name: str, countries: List[Dict[str, Any]], methods: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {'node': {'zone': {'id': zid, 'name': name, 'countries': countries},
                     'methodDefinitions': {'edges': [{'node': m} for m in methods]}}}


def country(code: Optional[str], provinces: Optional[List[str]] = None, rest_of_world: bool = False) -> Dict[str, Any]:
    return {'code': {'countryCode': code, 'restOfWorld': rest_of_world},
            'provinces': [{'name': p, 'code': p} for p in provinces or []]}


def profiles_payload(*zone_edges: Dict[str, Any]) -> Dict[str, Any]:
    profile = {
        'id': 'gid://shopify/DeliveryProfile/1',
        'name': 'General profile',
        'default': True,
        'profileLocationGroups': [{
            'locationGroup': {'id': 'gid://shopify/DeliveryLocationGroup/1'},
            'locationGroupZones': {'edges': list(zone_edges)},
        }],
    }
    return {'data': {'deliveryProfiles': {'edges': [{'node': profile}]}}}


def australia_payload(express_price: str = '12.00') -> Dict[str, Any]:
    return profiles_payload(
        zone('gid://shopify/DeliveryZone/10', 'Australia', [country('AU', ['NSW', 'VIC'])], [
            method('gid://shopify/DeliveryMethodDefinition/101', 'Free Standard Shipping', '8.00'),
            method('gid://shopify/DeliveryMethodDefinition/102', 'Express', express_price),
        ])
    )


class FakeShopify:
    """Client double returning canned delivery settings and profiles."""

    def __init__(self, payload: Dict[str, Any], legacy: bool = True):
        self.payload = payload
        self.legacy = legacy
        self.shop_domain = 'test-shop.myshopify.com'
        self.calls: List[str] = []

    def is_legacy_mode(self) -> bool:
        self.calls.append('settings')
        return self.legacy

    def get_delivery_profiles(self) -> Dict[str, Any]:
        self.calls.append('profiles')
        return self.payload


@pytest.fixture
def store() -> ShippingStore:
    s = ShippingStore()
    s.add_brand('brand-1', 'Acme')
    return s
