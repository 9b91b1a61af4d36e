#!/usr/bin/env python
"""Environment & connectivity diagnostics for the shipping sync.

Usage:
  python scripts/diagnose_env.py [--shopify]

Without flags runs variable presence checks. Use --shopify to test Shopify /shop.json
and the delivery settings query with the configured credentials.
"""
from __future__ import annotations
import os, sys, textwrap
from pathlib import Path
from typing import Dict, List

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from integrations.exceptions import ApiAuthError, ApiRequestError
from integrations.shopify_client import ShopifyClient, validate_shop_domain
from pipelines.settings import load_env_file

load_env_file(PROJECT_ROOT / '.env')

MANDATORY: List[str] = ['SHOPIFY_SHOP_DOMAIN', 'SHOPIFY_ACCESS_TOKEN']
OPTIONAL: List[str] = ['SHOPIFY_API_VERSION', 'SHOPIFY_RPS', 'SYNC_STORE_DIR', 'SYNC_BRAND_ID', 'WEBHOOK_BASE_URL']


def mask(val: str | None) -> str | None:
    if not val:
        return val
    if len(val) <= 6:
        return '*' * len(val)
    return val[:4] + '...' + val[-4:]


def check_presence() -> Dict[str, str]:
    return {k: 'OK' if (os.getenv(k) or '').strip() else 'MISSING' for k in MANDATORY}


def print_report():
    presence = check_presence()
    print('\n[VARIABLE PRESENCE]')
    widest = max(len(k) for k in MANDATORY + OPTIONAL)
    for k, status in presence.items():
        print(f"  {k.ljust(widest)} : {status:<8} {'' if status != 'OK' else mask(os.getenv(k))}")
    domain = os.getenv('SHOPIFY_SHOP_DOMAIN')
    if domain and not validate_shop_domain(domain):
        print(f"  WARNING: {domain} does not look like <name>.myshopify.com")
    print('\n[OPTIONAL]')
    for k in OPTIONAL:
        raw = os.getenv(k)
        if raw:
            print(f"  {k.ljust(widest)} = {raw}")
    print()


def test_shopify():
    missing = [k for k, status in check_presence().items() if status != 'OK']
    if missing:
        print(f"[shopify] Skipping connectivity test (missing: {', '.join(missing)})")
        return
    client = ShopifyClient.from_env()
    print(f"[shopify] GET {client.BASE_URL}/shop.json")
    result = client.test_connection()
    if not result['success']:
        print(f"[shopify] ERROR: {result['error']}")
        if '404' in result['error']:
            print(textwrap.dedent("""
                HINT 404: Check (1) correct shop domain, (2) API version exists, (3) token belongs to THIS shop, (4) app is installed.
            """))
        return
    print(f"[shopify] Shop  : {result['shop'].get('name')}")
    try:
        print(f"[shopify] Legacy mode profiles: {client.is_legacy_mode()}")
    except ApiAuthError as e:
        print(f"HINT 401/403: token lacks read_shipping scope ({e})")
    except ApiRequestError as e:
        print(f"[shopify] ERROR delivery settings: {e}")


def main(argv: List[str]):
    flags = set(a for a in argv[1:] if a.startswith('--'))
    print_report()
    if '--shopify' in flags:
        test_shopify()

if __name__ == '__main__':
    main(sys.argv)
