"""HTTP trigger for the Shopify shipping sync.

Run:
    uvicorn app:app --reload

Endpoints: ``POST /shopify/sync-shipping``, ``POST /shopify/register-webhooks``, ``GET /health``.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from fastapi import Depends, FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from integrations.exceptions import ApiRequestError, ShopifyGraphQLError
from integrations.shopify_client import ShopifyClient
from integrations.webhooks import provision_all, summarize
from pipelines.errors import NotFoundError, StructuralError, ValidationError
from pipelines.settings import SyncSettings, load_env_file
from pipelines.shipping_rules import FreeShippingPolicy
from pipelines.storage import ShippingStore
from pipelines.sync_service import require_params, sync_shipping

logger = logging.getLogger("app")

load_env_file(Path(__file__).resolve().parent / ".env")
logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")

app = FastAPI(title="Shopify shipping sync", version="0.1.0")


class SyncShippingRequest(BaseModel):
    brandId: Optional[str] = None
    accessToken: Optional[str] = None
    shop: Optional[str] = None


class RegisterWebhooksRequest(SyncShippingRequest):
    baseUrl: Optional[str] = None


@lru_cache(maxsize=1)
def get_settings() -> SyncSettings:
    return SyncSettings.load()


@lru_cache(maxsize=1)
def get_store() -> ShippingStore:
    store_dir = get_settings().store_dir
    return ShippingStore(Path(store_dir) if store_dir else None)


ClientFactory = Callable[[str, str], Any]


def get_client_factory() -> ClientFactory:
    settings = get_settings()

    def factory(shop: str, access_token: str) -> ShopifyClient:
        # one client (and throttle) per request credential
        return ShopifyClient(shop, access_token, api_version=settings.api_version, timeout=settings.timeout,
                             min_interval=settings.min_interval, retries=settings.retries)

    return factory


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.post("/shopify/sync-shipping")
def sync_shipping_route(
    body: SyncShippingRequest,
    store: ShippingStore = Depends(get_store),
    client_factory: ClientFactory = Depends(get_client_factory),
    settings: SyncSettings = Depends(get_settings),
):
    logger.info("Syncing shipping info for brand=%s shop=%s", body.brandId, body.shop)
    try:
        require_params(brandId=body.brandId, accessToken=body.accessToken, shop=body.shop)
        client = client_factory(body.shop, body.accessToken)
        policy = FreeShippingPolicy(settings.free_shipping_min_order_amount, settings.free_shipping_min_weight)
        report = sync_shipping(client, store, body.brandId, policy)
    except ValidationError:
        return _error("Missing required parameters", 400)
    except NotFoundError as e:
        return _error(str(e), 404)
    except ShopifyGraphQLError as e:
        return _error(str(e), 400)
    except (StructuralError, ApiRequestError) as e:
        logger.error("Error syncing shipping info: %s", e)
        return _error(str(e), 500)
    except Exception as e:
        logger.exception("Error syncing shipping info")
        return _error(str(e) or "Failed to sync shipping information", 500)
    return {
        "success": True,
        "message": "Shipping zones and rates synced successfully",
        "report": report.to_dict(),
    }


@app.post("/shopify/register-webhooks")
def register_webhooks_route(
    body: RegisterWebhooksRequest,
    store: ShippingStore = Depends(get_store),
    client_factory: ClientFactory = Depends(get_client_factory),
    settings: SyncSettings = Depends(get_settings),
):
    base_url = body.baseUrl or settings.webhook_base_url
    try:
        require_params(brandId=body.brandId, accessToken=body.accessToken, shop=body.shop, baseUrl=base_url)
    except ValidationError:
        return _error("Missing required parameters", 400)
    if store.get_brand(body.brandId) is None:
        return _error("Brand not found in database", 404)
    results = provision_all(client_factory(body.shop, body.accessToken), base_url)
    counts = summarize(results)
    return {"success": counts["failed"] == 0, **counts, "results": results}
