import logging
import time
from collections import OrderedDict
from typing import Optional
from urllib.parse import quote

import requests

from intolescan import config
from intolescan.models import ProductRecord

logger = logging.getLogger(__name__)


class ProductCache:
    """Recently fetched records, evicted least-recently-used and expired after ``ttl`` seconds."""

    def __init__(self, maxsize: int = 32, ttl: float = 300):
        self.maxsize = maxsize
        self.ttl = ttl
        self._entries: "OrderedDict[tuple, tuple]" = OrderedDict()

    def get(self, key: tuple):
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires, record = entry
        if time.monotonic() >= expires:
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return record

    def set(self, key: tuple, record) -> None:
        self._entries[key] = (time.monotonic() + self.ttl, record)
        self._entries.move_to_end(key)
        while len(self._entries) > self.maxsize:
            self._entries.popitem(last=False)

    def clear(self) -> None:
        self._entries.clear()


_cache = ProductCache()


def product_url(endpoint: str, code: str) -> str:
    return f"{endpoint.rstrip('/')}/api/v2/product/{quote(code, safe='')}.json"


def fetch_from_endpoint(endpoint: str, code: str, timeout: Optional[float] = None) -> Optional[dict]:
    """
    Returns the raw ``product`` object from one Open Food Facts host, or None
    when the host does not know the code or cannot be reached.
    """
    headers = {"User-Agent": config.OFF_USER_AGENT}
    try:
        resp = requests.get(product_url(endpoint, code), headers=headers,
                            timeout=timeout or config.OFF_TIMEOUT)
    except requests.RequestException as e:
        logger.warning(f"OFF: {endpoint} failed for {code}: {e}")
        return None
    if resp.status_code != 200:
        logger.info(f"OFF: {endpoint} answered HTTP {resp.status_code} for {code}")
        return None
    try:
        data = resp.json() or {}
    except ValueError:
        logger.warning(f"OFF: {endpoint} returned invalid JSON for {code}")
        return None
    if data.get("status") != 1 or not data.get("product"):
        return None
    return data["product"]


def fetch_product(code: str, endpoints=None, use_cache: bool = True) -> Optional[ProductRecord]:
    """
    Looks a product code up in each endpoint in order (national databases
    before the global one) and returns the first match, normalized.
    Returns None once every endpoint has been tried.
    """
    code = (code or "").strip()
    if not code:
        raise ValueError("product code must not be empty")

    endpoints = tuple(endpoints or config.OFF_ENDPOINTS)
    key = (code, endpoints)
    if use_cache:
        cached = _cache.get(key)
        if cached is not None:
            return cached

    for endpoint in endpoints:
        product = fetch_from_endpoint(endpoint, code)
        if product:
            record = ProductRecord.from_off(code, product, langs=config.INGREDIENT_LANGS)
            logger.info(f"OFF: {code} found on {endpoint}")
            if use_cache:
                _cache.set(key, record)
            return record

    logger.info(f"OFF: product {code} not found on any endpoint")
    return None


def clear_cache() -> None:
    _cache.clear()
