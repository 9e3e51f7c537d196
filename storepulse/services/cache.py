"""Per-shop key-value storage for tokens, insights and raw order data.

Backed by an in-process dict by default, or Redis when ``REDIS_URL`` is set.
Every cache entry carries its own timestamp and is treated as absent once
older than its TTL, whatever the backend does with expiry.
"""

import logging
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import replace

import redis
from pydantic import TypeAdapter

from storepulse.config import settings
from storepulse.connectors.base import OrderData
from storepulse.schemas import InsightsEntry, ShopToken

log = logging.getLogger(__name__)

KEY_PREFIX = "sp"

_order_data = TypeAdapter(OrderData)


# ── Backends ──────────────────────────────────────────────────────────────────

class KeyValueStore(ABC):
    @abstractmethod
    def get(self, key: str) -> str | None:
        """Return the stored value, or None when missing or expired."""

    @abstractmethod
    def set(self, key: str, value: str, ttl: int | None = None) -> None:
        """Store ``value``; ``ttl`` in seconds, ``None`` for no expiry."""

    @abstractmethod
    def delete(self, *keys: str) -> None:
        """Remove all ``keys`` in one step."""

    def ping(self) -> bool:
        return True


class MemoryStore(KeyValueStore):
    name = "memory"

    def __init__(self, clock=time.time):
        self._clock = clock
        self._data: dict[str, tuple[str, float | None]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            item = self._data.get(key)
            if item is None:
                return None
            value, expires_at = item
            if expires_at is not None and self._clock() > expires_at:
                del self._data[key]
                return None
            return value

    def set(self, key: str, value: str, ttl: int | None = None) -> None:
        expires_at = self._clock() + ttl if ttl else None
        with self._lock:
            self._data[key] = (value, expires_at)

    def delete(self, *keys: str) -> None:
        with self._lock:
            for key in keys:
                self._data.pop(key, None)


class RedisStore(KeyValueStore):
    name = "redis"

    def __init__(self, url: str):
        self._client = redis.from_url(url, decode_responses=True, socket_timeout=2)

    def ping(self) -> bool:
        try:
            return bool(self._client.ping())
        except redis.RedisError:
            return False

    def get(self, key: str) -> str | None:
        try:
            return self._client.get(key)
        except redis.RedisError as e:
            log.warning("Redis get failed for %s: %s", key, e)
            return None

    def set(self, key: str, value: str, ttl: int | None = None) -> None:
        try:
            if ttl:
                self._client.setex(key, ttl, value)
            else:
                self._client.set(key, value)
        except redis.RedisError as e:
            log.warning("Redis set failed for %s: %s", key, e)

    def delete(self, *keys: str) -> None:
        # Single DEL: either every key goes or none does.
        if keys:
            self._client.delete(*keys)


# ── Shop store ────────────────────────────────────────────────────────────────

class ShopStore:
    def __init__(
        self,
        backend: KeyValueStore,
        clock=time.time,
        insights_ttl: int = 24 * 60 * 60,
        order_data_ttl: int = 24 * 60 * 60,
    ):
        self.backend = backend
        self.clock = clock
        self.insights_ttl = insights_ttl
        self.order_data_ttl = order_data_ttl

    @staticmethod
    def _key(kind: str, shop: str) -> str:
        return f"{KEY_PREFIX}:{kind}:{shop}"

    def _expired(self, stamp: float, ttl: int) -> bool:
        return self.clock() - stamp > ttl

    # Tokens

    def get_token(self, shop: str) -> ShopToken | None:
        raw = self.backend.get(self._key("token", shop))
        return ShopToken.model_validate_json(raw) if raw else None

    def set_token(self, shop: str, access_token: str) -> ShopToken:
        token = ShopToken(access_token=access_token, installed_at=self.clock())
        self.backend.set(self._key("token", shop), token.model_dump_json())
        log.info("[store] saved token for %s", shop)
        return token

    # Insights

    def get_insights(self, shop: str) -> InsightsEntry | None:
        key = self._key("insights", shop)
        raw = self.backend.get(key)
        if not raw:
            return None
        entry = InsightsEntry.model_validate_json(raw)
        if self._expired(entry.generated_at, self.insights_ttl):
            self.backend.delete(key)
            return None
        return entry

    def set_insights(self, shop: str, entry: InsightsEntry) -> InsightsEntry:
        entry = entry.model_copy(update={"generated_at": self.clock()})
        self.backend.set(self._key("insights", shop), entry.model_dump_json(), self.insights_ttl)
        log.info("[cache] saved insights for %s", shop)
        return entry

    def clear_insights(self, shop: str) -> None:
        self.backend.delete(self._key("insights", shop))
        log.info("[cache] cleared insights for %s", shop)

    # Raw order data

    def get_order_data(self, shop: str) -> OrderData | None:
        key = self._key("orders", shop)
        raw = self.backend.get(key)
        if not raw:
            return None
        data = _order_data.validate_json(raw)
        if data.cached_at is None or self._expired(data.cached_at, self.order_data_ttl):
            self.backend.delete(key)
            return None
        return data

    def set_order_data(self, shop: str, data: OrderData) -> OrderData:
        data = replace(data, cached_at=self.clock())
        self.backend.set(self._key("orders", shop), _order_data.dump_json(data).decode(), self.order_data_ttl)
        log.info("[cache] saved order data for %s", shop)
        return data

    def clear_order_data(self, shop: str) -> None:
        self.backend.delete(self._key("orders", shop))
        log.info("[cache] cleared order data for %s", shop)

    # Pairs

    def clear_all_caches(self, shop: str) -> None:
        """Insights depend on order data, so both go together."""
        self.backend.delete(self._key("insights", shop), self._key("orders", shop))
        log.info("[cache] cleared insights and order data for %s", shop)

    def delete_all(self, shop: str) -> None:
        self.backend.delete(
            self._key("token", shop),
            self._key("insights", shop),
            self._key("orders", shop),
        )
        log.info("[store] deleted token and caches for %s", shop)


_store: ShopStore | None = None


def _build_backend() -> KeyValueStore:
    if settings.REDIS_URL:
        backend = RedisStore(settings.REDIS_URL)
        if backend.ping():
            log.info("Redis connected")
            return backend
        log.warning("Redis not available, falling back to in-process store")
    return MemoryStore()


def get_shop_store() -> ShopStore:
    global _store
    if _store is None:
        _store = ShopStore(
            _build_backend(),
            insights_ttl=settings.INSIGHTS_TTL_SECONDS,
            order_data_ttl=settings.ORDER_DATA_TTL_SECONDS,
        )
    return _store
