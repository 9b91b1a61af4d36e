#!/usr/bin/env python
from __future__ import annotations
import argparse
import uuid
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, List

# Ensure project root is on sys.path when running directly
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from integrations.exceptions import ApiRequestError
from integrations.mock_provider import MockShopifyClient, seed_mock
from integrations.shopify_client import ShopifyClient
from integrations.webhooks import provision_all, summarize
from pipelines.errors import SyncError
from pipelines.settings import SyncSettings, load_env_file
from pipelines.shipping_rules import FreeShippingPolicy
from pipelines.storage import ShippingStore, append_run_log, save_raw, sha256_json, utc_now_iso
from pipelines.sync_service import sync_shipping

logger = logging.getLogger('pipelines.run_pipeline')


def parse_args(argv: List[str] | None = None):
    p = argparse.ArgumentParser(description='Sync Shopify shipping zones and rates into the local store')
    p.add_argument('--brand-id', default=os.getenv('SYNC_BRAND_ID'), help='Brand whose shipping configuration is synced')
    p.add_argument('--add-brand', action='store_true', help='Register --brand-id in the store before syncing')
    p.add_argument('--shop', default=os.getenv('SHOPIFY_SHOP_DOMAIN'), help='Shop domain, e.g. my-store.myshopify.com')
    p.add_argument('--store-dir', help='Directory holding the Parquet tables (overrides SYNC_STORE_DIR)')
    p.add_argument('--run-id', default='auto')
    p.add_argument('--dry-run', action='store_true', help='Do not write tables or the run log')
    p.add_argument('--fake', action='store_true', help='Use a synthetic delivery graph instead of calling Shopify')
    p.add_argument('--seed', type=int, help='Deterministic seed for synthetic data')
    p.add_argument('--save-raw', action='store_true', help='Keep the raw delivery-profile payload under data/raw')
    p.add_argument('--register-webhooks', metavar='BASE_URL', nargs='?', const='', default=None,
                   help='Register the webhook catalogue pointing at BASE_URL (defaults to WEBHOOK_BASE_URL)')
    p.add_argument('--list-products', action='store_true', help='Fetch every active product page and report the count')
    p.add_argument('--skip-shipping', action='store_true', help='Do not run the shipping sync')
    p.add_argument('--verbose', action='store_true')
    p.add_argument('--debug-env', action='store_true', help='Print environment variables (sanitized) for troubleshooting')
    return p.parse_args(argv)


def _mask(val: str | None):
    if not val:
        return val
    if len(val) <= 8:
        return '*' * len(val)
    return val[:4] + '...' + val[-4:]


def build_client(args, settings: SyncSettings):
    if args.fake:
        return MockShopifyClient(shop_domain=args.shop or 'mock-shop.myshopify.com')
    token = ShopifyClient.env('SHOPIFY_ACCESS_TOKEN')
    return ShopifyClient(args.shop, token, api_version=settings.api_version, timeout=settings.timeout,
                         min_interval=settings.min_interval, retries=settings.retries)


def main(argv: List[str] | None = None) -> int:
    load_env_file(PROJECT_ROOT / '.env')
    args = parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO, format='[%(levelname)s] %(message)s')
    settings = SyncSettings.load()
    run_id = args.run_id if args.run_id != 'auto' else uuid.uuid4().hex[:8]
    if args.seed is not None:
        seed_mock(args.seed)
    if args.debug_env:
        env_snapshot = {k: _mask(os.getenv(k)) for k in ['SHOPIFY_SHOP_DOMAIN', 'SHOPIFY_API_VERSION', 'SHOPIFY_ACCESS_TOKEN', 'SHOPIFY_RPS', 'SYNC_STORE_DIR']}
        print('[debug] env ->', env_snapshot)

    record: Dict[str, Any] = {'run_id': run_id, 'started_at': utc_now_iso(), 'status': 'success', 'shop': args.shop, 'brand_id': args.brand_id}
    exit_code = 0
    try:
        if not args.fake and not args.shop:
            raise SyncError('--shop (or SHOPIFY_SHOP_DOMAIN) is required unless --fake is set')
        client = build_client(args, settings)
        store_dir = args.store_dir or settings.store_dir
        store = ShippingStore(Path(store_dir) if store_dir else None)
        if args.dry_run:
            store.root = None  # keep loaded tables, skip writes
        if args.add_brand and args.brand_id:
            store.add_brand(args.brand_id)

        if not args.skip_shipping:
            policy = FreeShippingPolicy(settings.free_shipping_min_order_amount, settings.free_shipping_min_weight)

            def _keep_raw(payload: Dict[str, Any]) -> None:
                record['raw_file'] = str(save_raw('shopify', 'delivery_profiles', payload, run_id))
                record['raw_hash'] = sha256_json(payload)

            raw_sink = _keep_raw if args.save_raw and not args.dry_run else None
            report = sync_shipping(client, store, args.brand_id, policy, raw_sink=raw_sink)
            record['shipping'] = report.to_dict()

        if args.register_webhooks is not None:
            base_url = args.register_webhooks or settings.webhook_base_url
            if not base_url:
                raise SyncError('--register-webhooks needs a BASE_URL or WEBHOOK_BASE_URL')
            results = provision_all(client, base_url)
            record['webhooks'] = summarize(results)

        if args.list_products:
            fetched = client.fetch_all_products(page_size=settings.page_size, max_pages=settings.max_pages)
            record['products'] = {'total': fetched.total, 'pages': fetched.pages, 'errors': fetched.errors}
    except (SyncError, ApiRequestError) as e:
        logger.error('Sync failed: %s', e)
        record['status'] = 'error'
        record['error'] = str(e)
        exit_code = 1

    record['finished_at'] = utc_now_iso()
    if not args.dry_run:
        append_run_log(record)
    print(json.dumps(record, indent=2, default=str))
    return exit_code


if __name__ == '__main__':
    sys.exit(main())
