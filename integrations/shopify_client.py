from __future__ import annotations
import os
import re
import logging
from typing import Any, Dict, List, Optional
from .base_client import BaseClient
from .exceptions import ApiRequestError, ShopifyGraphQLError
from .pagination import FetchResult, PaginatedResourceFetcher

logger = logging.getLogger(__name__)

DEFAULT_API_VERSION = '2024-01'

DELIVERY_SETTINGS_QUERY = """
query {
  deliverySettings {
    legacyModeProfiles
  }
}
"""

DELIVERY_PROFILES_QUERY = """
query {
  deliveryProfiles(first: 10) {
    edges {
      node {
        id
        name
        default
        profileLocationGroups {
          locationGroup {
            id
          }
          locationGroupZones(first: 10) {
            edges {
              node {
                zone {
                  id
                  name
                  countries {
                    code {
                      countryCode
                      restOfWorld
                    }
                    provinces {
                      name
                      code
                    }
                  }
                }
                methodDefinitions(first: 10) {
                  edges {
                    node {
                      id
                      active
                      name
                      description
                      rateProvider {
                        ... on DeliveryRateDefinition {
                          price {
                            amount
                            currencyCode
                          }
                        }
                      }
                      methodConditions {
                        field
                        operator
                        conditionCriteria {
                          __typename
                          ... on MoneyV2 {
                            amount
                            currencyCode
                          }
                          ... on Weight {
                            unit
                            value
                          }
                        }
                      }
                    }
                  }
                }
              }
            }
          }
        }
      }
    }
  }
}
"""

_SHOP_DOMAIN_RE = re.compile(r'^[a-zA-Z0-9-]+\.myshopify\.com$')


def validate_shop_domain(domain: str) -> bool:
    return bool(domain) and bool(_SHOP_DOMAIN_RE.match(domain))


def extract_shop_name(domain: str) -> str:
    return domain.replace('.myshopify.com', '')


def _json_field(data: Any, key: str, default: Any) -> Any:
    if not isinstance(data, dict):
        raise ApiRequestError(f"Expected a JSON object with '{key}', got {type(data).__name__}")
    return data.get(key) or default


class ShopifyClient(BaseClient):
    """Shopify Admin API client scoped to one shop credential (GraphQL + REST)."""
    RATE_LIMIT_RPS_ENV = 'SHOPIFY_RPS'

    def __init__(self, shop_domain: str, access_token: str, api_version: str = DEFAULT_API_VERSION, timeout: int = 30, min_interval: Optional[float] = None, retries: int = 0):
        super().__init__(timeout=timeout, min_interval=min_interval, retries=retries)
        self.shop_domain = shop_domain
        self.api_version = api_version
        self.access_token = access_token
        self.BASE_URL = f"https://{shop_domain}/admin/api/{api_version}"

    @classmethod
    def from_env(cls) -> 'ShopifyClient':
        shop_domain = BaseClient.env('SHOPIFY_SHOP_DOMAIN')
        api_version = os.getenv('SHOPIFY_API_VERSION') or DEFAULT_API_VERSION
        access_token = BaseClient.env('SHOPIFY_ACCESS_TOKEN')
        return cls(shop_domain, access_token, api_version=api_version)  # type: ignore[arg-type]

    def _headers(self) -> Dict[str, str]:
        return {
            'X-Shopify-Access-Token': self.access_token,
            'Accept': 'application/json',
            'Content-Type': 'application/json'
        }

    @property
    def graphql_url(self) -> str:
        return f"{self.BASE_URL}/graphql.json"

    def graphql(self, query: str, variables: Dict[str, Any] | None = None) -> Dict[str, Any]:
        payload: Dict[str, Any] = {'query': query}
        if variables:
            payload['variables'] = variables
        data = self._request('POST', self.graphql_url, json_body=payload)
        if not isinstance(data, dict):
            raise ApiRequestError('GraphQL endpoint returned a non-JSON body')
        if data.get('errors'):
            logger.error('GraphQL errors from %s: %s', self.shop_domain, data['errors'])
            raise ShopifyGraphQLError(data['errors'])
        return data

    def get_delivery_settings(self) -> Dict[str, Any]:
        data = self.graphql(DELIVERY_SETTINGS_QUERY)
        return (data.get('data') or {}).get('deliverySettings') or {}

    def is_legacy_mode(self) -> bool:
        return bool(self.get_delivery_settings().get('legacyModeProfiles'))

    def get_delivery_profiles(self) -> Dict[str, Any]:
        """Return the raw ``deliveryProfiles`` GraphQL payload (``data`` envelope included)."""
        return self.graphql(DELIVERY_PROFILES_QUERY)

    def get_shop(self) -> Dict[str, Any]:
        return _json_field(self._request('GET', 'shop.json'), 'shop', {})

    def test_connection(self) -> Dict[str, Any]:
        try:
            return {'success': True, 'shop': self.get_shop()}
        except ApiRequestError as e:
            return {'success': False, 'error': str(e)}

    def list_products(self, limit: int = 50, since_id: Optional[str] = None, status: Optional[str] = None) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {'limit': limit}
        if since_id:
            params['since_id'] = since_id
        if status:
            params['status'] = status
        data = self._request('GET', 'products.json', params=params)
        return data.get('products', []) if isinstance(data, dict) else []

    def fetch_all_products(self, page_size: int = 50, status: Optional[str] = 'active', max_pages: Optional[int] = None) -> FetchResult:
        def _page(limit: int, since_id: Optional[str]) -> List[Dict[str, Any]]:
            return self.list_products(limit=limit, since_id=since_id, status=status)

        fetcher = PaginatedResourceFetcher(_page) if max_pages is None else PaginatedResourceFetcher(_page, max_pages=max_pages)
        return fetcher.fetch_all(page_size)

    def create_webhook(self, topic: str, address: str, format: str = 'json') -> Dict[str, Any]:
        body = {'webhook': {'topic': topic, 'address': address, 'format': format}}
        return _json_field(self._request('POST', 'webhooks.json', json_body=body), 'webhook', {})

    def list_webhooks(self) -> List[Dict[str, Any]]:
        return _json_field(self._request('GET', 'webhooks.json'), 'webhooks', [])

    def delete_webhook(self, webhook_id: str) -> None:
        self._request('DELETE', f'webhooks/{webhook_id}.json')
