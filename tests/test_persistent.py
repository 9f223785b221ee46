import sqlite3
from dataclasses import fields, replace
from datetime import datetime, timezone

import pytest

from ordersvc.database import Database
from ordersvc.entity import Order, order_from_json
from ordersvc.errors import RecordNotFoundError
from ordersvc.persistent import OrdersRepository

SAMPLE_JSON = """
{"order_uid": "b563feb7b2b84b6test", "track_number": "WBILMTESTTRACK", "entry": "WBIL",
 "locale": "en", "internal_signature": "", "customer_id": "test", "delivery_service": "meest",
 "shardkey": "9", "sm_id": 99, "oof_shard": "1",
 "delivery": {"name": "Test Testov", "phone": "[phone]", "zip": "2639809", "city": "Kiryat Mozkin",
              "address": "Ploshad Mira 15", "region": "Kraiot", "email": "[email]"},
 "payment": {"transaction": "b563feb7b2b84b6test", "request_id": "", "currency": "USD",
             "provider": "wbpay", "amount": 1817, "payment_dt": 1637907727, "bank": "alpha",
             "delivery_cost": 1500, "goods_total": 317, "custom_fee": 0},
 "items": [{"chrt_id": 9934930, "track_number": "WBILMTESTTRACK", "price": 453,
            "rid": "ab4219087a764ae0btest", "name": "Mascaras", "sale": 30, "size": "0",
            "total_price": 317, "nm_id": 2389212, "brand": "Vivienne Sabo", "status": 202}]}
"""
UID = "b563feb7b2b84b6test"


def example_order(order_uid=UID, transaction=UID):
    order = order_from_json(SAMPLE_JSON)
    return replace(order, order_uid=order_uid, payment=replace(order.payment, transaction=transaction))


@pytest.fixture
def repo():
    database = Database("sqlite://")
    database.create_schema()
    yield OrdersRepository(database)
    database.close()


def test_store_and_get(repo):
    order = example_order()
    repo.store(order)

    got = repo.get_order(UID)

    for field in fields(Order):
        if field.name != "date_created":
            assert getattr(got, field.name) == getattr(order, field.name), field.name


def test_store_sets_creation_time_to_now(repo):
    before = datetime.now(timezone.utc)
    repo.store(example_order())
    after = datetime.now(timezone.utc)
    assert before <= repo.get_order(UID).date_created <= after


def test_get_missing_order_raises(repo):
    with pytest.raises(RecordNotFoundError):
        repo.get_order("unknown")


def test_items_keep_their_order(repo):
    first = example_order().items[0]
    second = replace(first, chrt_id=1, rid="second")
    repo.store(replace(example_order(), items=[first, second]))
    assert repo.get_order(UID).items == [first, second]


def test_order_without_items_has_empty_list(repo):
    repo.store(replace(example_order(), items=[]))
    assert repo.get_order(UID).items == []


def test_duplicate_order_rejected(repo):
    repo.store(example_order())
    with pytest.raises(sqlite3.IntegrityError):
        repo.store(example_order())


def test_failed_store_leaves_nothing_behind(repo):
    repo.store(example_order())
    with pytest.raises(sqlite3.IntegrityError):
        repo.store(example_order(order_uid="other"))
    with pytest.raises(RecordNotFoundError):
        repo.get_order("other")


def test_list_recent_orders_empty_raises(repo):
    with pytest.raises(RecordNotFoundError):
        repo.list_recent_orders(5)


def test_list_recent_orders_newest_first(repo):
    for uid in ("a", "b", "c"):
        repo.store(example_order(order_uid=uid, transaction=uid))
    recent = repo.list_recent_orders(2)
    assert [order.order_uid for order in recent] == ["c", "b"]
    for order in recent:
        expected = example_order(order_uid=order.order_uid, transaction=order.order_uid)
        assert (order.delivery, order.payment, order.items) == (
            expected.delivery,
            expected.payment,
            expected.items,
        )


def test_list_recent_orders_matches_get(repo):
    repo.store(example_order(order_uid="x", transaction="x"))
    repo.store(replace(example_order(order_uid="y", transaction="y"), items=[]))
    listed = {order.order_uid: order for order in repo.list_recent_orders(10)}
    assert set(listed) == {"x", "y"}
    assert listed["x"] == repo.get_order("x")
    assert listed["y"].items == []