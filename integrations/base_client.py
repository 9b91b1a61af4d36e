from __future__ import annotations
import os
import time
import json
import logging
from typing import Any, Dict, Optional
import requests
from .exceptions import (
    ApiAuthError,
    ApiNetworkError,
    ApiPermanentError,
    ApiRateLimitError,
    ApiTransientError,
)

logger = logging.getLogger(__name__)

DEFAULT_MIN_INTERVAL = 0.5  # seconds between sends, i.e. at most 2 req/s
DEFAULT_TIMEOUT = 30


class BaseClient:
    """Base HTTP client with per-instance throttling, error classification and JSON handling.

    Each instance owns its own throttle clock, so one client must be created per
    credential context. Sharing an instance between brands serializes their traffic.
    """
    BASE_URL: str = ''
    RATE_LIMIT_RPS_ENV: Optional[str] = None  # environment variable name e.g. SHOPIFY_RPS

    def __init__(self, timeout: int = DEFAULT_TIMEOUT, min_interval: Optional[float] = None, retries: int = 0):
        self.session = requests.Session()
        self.timeout = timeout
        self.retries = retries
        self.min_interval = min_interval if min_interval is not None else self._interval_from_env()
        self._last_request_ts: Optional[float] = None

    def _interval_from_env(self) -> float:
        if not self.RATE_LIMIT_RPS_ENV:
            return DEFAULT_MIN_INTERVAL
        rps_value = os.getenv(self.RATE_LIMIT_RPS_ENV)
        if not rps_value:
            return DEFAULT_MIN_INTERVAL
        try:
            rps = float(rps_value)
        except ValueError:
            logger.warning('Ignoring non-numeric %s=%r', self.RATE_LIMIT_RPS_ENV, rps_value)
            return DEFAULT_MIN_INTERVAL
        if rps <= 0:
            return DEFAULT_MIN_INTERVAL
        return 1.0 / rps

    def _respect_rate_limit(self) -> None:
        if self.min_interval > 0 and self._last_request_ts is not None:
            elapsed = time.monotonic() - self._last_request_ts
            if elapsed < self.min_interval:
                wait = self.min_interval - elapsed
                logger.debug('Throttling request for %.3fs', wait)
                time.sleep(wait)
        self._last_request_ts = time.monotonic()

    def _headers(self) -> Dict[str, str]:
        return {'Accept': 'application/json', 'Content-Type': 'application/json'}

    def _request(self, method: str, path: str, *, params: Dict[str, Any] | None = None, headers: Dict[str, str] | None = None, json_body: Any | None = None) -> Any:
        url = path if path.startswith('http') else self.BASE_URL.rstrip('/') + '/' + path.lstrip('/')
        attempt = 0
        while True:
            self._respect_rate_limit()
            try:
                resp = self.session.request(method.upper(), url, params=params, headers=headers or self._headers(), json=json_body, timeout=self.timeout)
            except requests.RequestException as e:
                raise ApiNetworkError(f"Network error: {e}") from e

            status = resp.status_code
            if status == 401 or status == 403:
                raise ApiAuthError(f"Auth error {status}: {resp.text[:200]}", status)
            if status == 429:
                logger.warning('Rate limit exceeded (429) on %s %s', method.upper(), url)
                if attempt < self.retries:
                    attempt += 1
                    wait = _retry_after(resp)
                    if wait:
                        time.sleep(wait)
                    continue
                raise ApiRateLimitError(f"Rate limit hit (429): {resp.text[:200]}", status)
            if status >= 500:
                if attempt < self.retries:
                    attempt += 1
                    logger.warning('Server error %s on %s, retry %d/%d', status, url, attempt, self.retries)
                    continue
                raise ApiTransientError(f"Server error {status}: {resp.text[:200]}", status)
            if status >= 400:
                raise ApiPermanentError(f"Client error {status}: {resp.text[:200]}", status)

            ctype = resp.headers.get('Content-Type', '')
            if 'application/json' in ctype:
                try:
                    return resp.json()
                except json.JSONDecodeError:
                    raise ApiPermanentError('Failed to decode JSON response', status)
            return resp.text

    @staticmethod
    def env(name: str, required: bool = True) -> Optional[str]:
        val = os.getenv(name)
        if required and (val is None or val.strip() == ''):
            raise ApiAuthError(f"Missing required environment variable: {name}")
        return val


def _retry_after(resp: requests.Response) -> float:
    try:
        return float(resp.headers.get('Retry-After', '0'))
    except ValueError:
        return 0.0
