"""Order storage in the relational database."""

from __future__ import annotations

import sqlite3
from collections.abc import Iterable, Sequence
from dataclasses import astuple
from datetime import datetime, timezone
from typing import Protocol, runtime_checkable

from ordersvc.database import Database
from ordersvc.entity import Delivery, Item, Order, Payment
from ordersvc.errors import RecordNotFoundError

_ORDER_COLUMNS = (
    "order_uid, track_number, entry, locale, internal_signature, customer_id, "
    "delivery_service, shardkey, sm_id, date_created, oof_shard"
)
_DELIVERY_COLUMNS = "name, phone, zip, city, address, region, email"
_PAYMENT_COLUMNS = (
    '"transaction", request_id, currency, provider, amount, '
    "payment_dt, bank, delivery_cost, goods_total, custom_fee"
)
_ITEM_COLUMNS = "chrt_id, track_number, price, rid, name, sale, size, total_price, nm_id, brand, status"


@runtime_checkable
class OrdersRepo(Protocol):
    """Anything that can store and look up orders."""

    def store(self, order: Order) -> None: ...

    def get_order(self, order_uid: str) -> Order: ...


def _order_row(order: Order, created: str) -> tuple:
    return (
        order.order_uid,
        order.track_number,
        order.entry,
        order.locale,
        order.internal_signature,
        order.customer_id,
        order.delivery_service,
        order.shard_key,
        order.sm_id,
        created,
        order.oof_shard,
    )


def _order_from_row(row: Sequence) -> Order:
    fields = list(row)
    fields[9] = datetime.fromisoformat(fields[9])
    names = (
        "order_uid", "track_number", "entry", "locale", "internal_signature", "customer_id",
        "delivery_service", "shard_key", "sm_id", "date_created", "oof_shard",
    )
    return Order(**dict(zip(names, fields)))


def _insert(conn: sqlite3.Connection, table: str, columns: str, rows: Iterable[tuple]) -> None:
    rows = list(rows)
    if not rows:
        return
    marks = ", ".join("?" for _ in rows[0])
    conn.executemany(f"INSERT INTO {table} ({columns}) VALUES ({marks})", rows)


def _fetch_one(conn: sqlite3.Connection, columns: str, table: str, order_uid: str) -> tuple:
    row = conn.execute(f"SELECT {columns} FROM {table} WHERE order_uid = ?", (order_uid,)).fetchone()
    if row is None:
        raise RecordNotFoundError()
    return row


class OrdersRepository:
    """Stores orders with their delivery, payment and items."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def store(self, order: Order) -> None:
        """Insert an order in one transaction; its creation time is set to now (UTC)."""
        now = datetime.now(timezone.utc).isoformat(timespec="microseconds")
        uid = order.order_uid
        with self._db.transaction() as conn:
            _insert(conn, "orders", _ORDER_COLUMNS, [_order_row(order, now)])
            _insert(conn, "deliveries", f"order_uid, {_DELIVERY_COLUMNS}", [(uid, *astuple(order.delivery))])
            _insert(conn, "payments", f"order_uid, {_PAYMENT_COLUMNS}", [(uid, *astuple(order.payment))])
            _insert(conn, "items", f"order_uid, {_ITEM_COLUMNS}", ((uid, *astuple(item)) for item in order.items))

    def get_order(self, order_uid: str) -> Order:
        """Load one order; raises RecordNotFoundError when it or its parts are missing."""
        with self._db.transaction() as conn:
            order = _order_from_row(_fetch_one(conn, _ORDER_COLUMNS, "orders", order_uid))
            order.delivery = Delivery(*_fetch_one(conn, _DELIVERY_COLUMNS, "deliveries", order_uid))
            order.payment = Payment(*_fetch_one(conn, _PAYMENT_COLUMNS, "payments", order_uid))
            order.items = [
                Item(*row)
                for row in conn.execute(
                    f"SELECT {_ITEM_COLUMNS} FROM items WHERE order_uid = ? ORDER BY id", (order_uid,)
                )
            ]
        return order

    def list_recent_orders(self, limit: int) -> list[Order]:
        """Return up to ``limit`` newest orders; raises RecordNotFoundError when there are none."""
        with self._db.transaction() as conn:
            orders = [
                _order_from_row(row)
                for row in conn.execute(
                    f"SELECT {_ORDER_COLUMNS} FROM orders ORDER BY date_created DESC, rowid DESC LIMIT ?",
                    (limit,),
                )
            ]
            if not orders:
                raise RecordNotFoundError()

            uids = [order.order_uid for order in orders]
            marks = ", ".join("?" for _ in uids)

            def select(columns: str, table: str, suffix: str = "") -> sqlite3.Cursor:
                return conn.execute(
                    f"SELECT order_uid, {columns} FROM {table} WHERE order_uid IN ({marks}){suffix}", uids
                )

            deliveries = {row[0]: Delivery(*row[1:]) for row in select(_DELIVERY_COLUMNS, "deliveries")}
            payments = {row[0]: Payment(*row[1:]) for row in select(_PAYMENT_COLUMNS, "payments")}
            items: dict[str, list[Item]] = {}
            for row in select(_ITEM_COLUMNS, "items", " ORDER BY id"):
                items.setdefault(row[0], []).append(Item(*row[1:]))

        for order in orders:
            uid = order.order_uid
            order.delivery = deliveries.get(uid, order.delivery)
            order.payment = payments.get(uid, order.payment)
            order.items = items.get(uid, [])
        return orders