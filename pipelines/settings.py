from __future__ import annotations
import os
import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

CONFIG_PATH = Path('config/sync_config.yaml')


def load_env_file(env_path: Path) -> None:
    """Load KEY=VALUE lines from a local .env file without overriding non-empty variables."""
    if not env_path.exists():
        return
    for line in env_path.read_text(encoding='utf-8').splitlines():
        line = line.strip()
        if not line or line.startswith('#') or '=' not in line:
            continue
        k, v = line.split('=', 1)
        k = k.strip()
        v = v.strip().strip('"').strip("'")
        if not k:
            continue
        existing = os.environ.get(k)
        if existing is None or existing.strip() == '':
            os.environ[k] = v


def load_config(path: Path = CONFIG_PATH) -> Dict[str, Any]:
    if not path.exists():
        return {}
    with path.open('r', encoding='utf-8') as f:
        return yaml.safe_load(f) or {}


@dataclass
class SyncSettings:
    api_version: str = '2024-01'
    min_interval: float = 0.5
    timeout: int = 30
    retries: int = 0
    page_size: int = 50
    max_pages: int = 10_000
    free_shipping_min_order_amount: float = 100.0
    free_shipping_min_weight: float = 20.0
    store_dir: Optional[str] = None
    webhook_base_url: Optional[str] = None

    @classmethod
    def load(cls, path: Path = CONFIG_PATH) -> 'SyncSettings':
        """Defaults, overridden by the YAML ``sync`` section, overridden by environment variables."""
        cfg = load_config(path)
        section = cfg.get('sync', cfg) if isinstance(cfg, dict) else {}
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in (section or {}).items() if k in known}
        unknown = set((section or {}).keys()) - known
        if unknown:
            logger.warning('Ignoring unknown config keys: %s', sorted(unknown))
        settings = cls(**values)
        env_api = os.getenv('SHOPIFY_API_VERSION')
        if env_api:
            settings.api_version = env_api
        rps = os.getenv('SHOPIFY_RPS')
        if rps:
            try:
                settings.min_interval = 1.0 / float(rps) if float(rps) > 0 else settings.min_interval
            except ValueError:
                logger.warning('Ignoring non-numeric SHOPIFY_RPS=%r', rps)
        settings.store_dir = os.getenv('SYNC_STORE_DIR') or settings.store_dir
        settings.webhook_base_url = os.getenv('WEBHOOK_BASE_URL') or settings.webhook_base_url
        return settings
