"""Order repository fronted by an in-memory LRU cache."""

from __future__ import annotations

from datetime import timedelta

from ordersvc.entity import Order
from ordersvc.errors import RecordNotFoundError
from ordersvc.lru import LRUCache
from ordersvc.persistent import OrdersRepository


class CachedOrdersRepository:
    """Reads orders from the cache first and falls back to the database."""

    def __init__(self, db: OrdersRepository, capacity: int, ttl_minutes: int) -> None:
        self._db = db
        self._cache = LRUCache(capacity, timedelta(minutes=ttl_minutes))

    def get_order(self, order_uid: str) -> Order:
        """Return an order, caching it after a database read."""
        hit = self._cache.get(order_uid)
        if hit is None:
            hit = self._db.get_order(order_uid)
            self._cache.set(order_uid, hit)
        return hit

    def store(self, order: Order) -> None:
        """Write an order to the database, then remember it."""
        self._db.store(order)
        self._cache.set(order.order_uid, order)

    def preload_cache(self, limit: int) -> None:
        """Fill the cache with up to ``limit`` newest orders; an empty database is fine."""
        try:
            recent = self._db.list_recent_orders(limit)
        except RecordNotFoundError:
            recent = []
        for entry in recent:
            self._cache.set(entry.order_uid, entry)