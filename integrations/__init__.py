"""Shopify Admin API integration: throttled client, cursor pagination, webhook provisioning.

Usage example:
    from integrations.shopify_client import ShopifyClient
    client = ShopifyClient.from_env()
    profiles = client.get_delivery_profiles()
"""
from .exceptions import (  # noqa: F401
    ApiRequestError,
    ApiAuthError,
    ApiNetworkError,
    ApiPermanentError,
    ApiRateLimitError,
    ApiTransientError,
    ShopifyGraphQLError,
)
