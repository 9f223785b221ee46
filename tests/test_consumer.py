import io
import threading
import time
from datetime import timedelta

import pytest

from ordersvc.consumer import OrdersConsumer, QueueMessageSource
from ordersvc.entity import Delivery, Item, Order, Payment, order_to_json
from ordersvc.logger import Logger


def sample_order():
    return Order(
        order_uid="b563feb7b2b84b6test",
        track_number="WBILMTESTTRACK",
        entry="WBIL",
        locale="en",
        customer_id="test",
        delivery_service="meest",
        shard_key="9",
        sm_id=99,
        oof_shard="1",
        delivery=Delivery(
            name="Test Testov",
            phone="[phone]",
            zip="2639809",
            city="Kiryat Mozkin",
            address="Ploshad Mira 15",
            region="Kraiot",
            email="test@example.com",
        ),
        payment=Payment(
            transaction="b563feb7b2b84b6test",
            currency="USD",
            provider="wbpay",
            amount=1817,
            payment_dt=1637907727,
            bank="alpha",
            delivery_cost=1500,
            goods_total=317,
        ),
        items=[
            Item(
                chrt_id=9934930,
                track_number="WBILMTESTTRACK",
                price=453,
                rid="ab4219087a764ae0btest",
                name="Mascaras",
                sale=30,
                size="0",
                total_price=317,
                nm_id=2389212,
                brand="Vivienne Sabo",
                status=202,
            )
        ],
    )


class RecordingRepo:
    def __init__(self, error=None):
        self.stored = []
        self.error = error

    def store(self, order):
        if self.error is not None:
            raise self.error
        self.stored.append(order)

    def get_order(self, order_uid):
        raise LookupError(order_uid)


def wait_for(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def run_consumer(consumer):
    thread = threading.Thread(target=consumer.start, daemon=True)
    thread.start()
    return thread


def test_source_returns_messages_in_order():
    source = QueueMessageSource(read_timeout=1)
    source.put(b"first")
    source.put("héllo")
    assert source.read_message() == b"first"
    assert source.read_message() == "héllo".encode("utf-8")


def test_source_read_times_out_when_empty():
    source = QueueMessageSource(read_timeout=0.05)
    with pytest.raises(TimeoutError):
        source.read_message()


def test_source_accepts_timedelta():
    source = QueueMessageSource(read_timeout=timedelta(seconds=3))
    assert source.read_timeout == 3.0


def test_closed_source_rejects_reads_and_writes():
    source = QueueMessageSource(read_timeout=1)
    source.close()
    source.close()
    with pytest.raises(ConnectionError):
        source.read_message()
    with pytest.raises(ConnectionError):
        source.put(b"late")


def test_consumer_stores_valid_order():
    order = sample_order()
    source = QueueMessageSource(read_timeout=1)
    repo = RecordingRepo()
    stream = io.StringIO()
    consumer = OrdersConsumer(source, repo, Logger("info", stream))
    source.put(order_to_json(order))
    thread = run_consumer(consumer)

    assert wait_for(lambda: repo.stored)
    consumer.stop()
    thread.join(5)

    assert not thread.is_alive()
    assert repo.stored == [order]
    log = stream.getvalue()
    assert "Order b563feb7b2b84b6test stored" in log
    assert "Consumer stopped by context cancel" in log


def test_consumer_skips_malformed_message():
    order = sample_order()
    source = QueueMessageSource(read_timeout=1)
    repo = RecordingRepo()
    stream = io.StringIO()
    consumer = OrdersConsumer(source, repo, Logger("info", stream))
    source.put(b"{not json")
    source.put(order_to_json(order))
    thread = run_consumer(consumer)

    assert wait_for(lambda: repo.stored)
    consumer.stop()
    thread.join(5)

    assert [stored.order_uid for stored in repo.stored] == [order.order_uid]
    assert "Consumer - Start - json.Unmarshal" in stream.getvalue()


def test_consumer_logs_storage_failure():
    source = QueueMessageSource(read_timeout=1)
    repo = RecordingRepo(error=RuntimeError("storage problems"))
    stream = io.StringIO()
    consumer = OrdersConsumer(source, repo, Logger("info", stream))
    source.put(order_to_json(sample_order()))
    thread = run_consumer(consumer)

    assert wait_for(lambda: "Consumer - Start - c.r.Store" in stream.getvalue())
    consumer.stop()
    thread.join(5)

    log = stream.getvalue()
    assert "storage problems" in log
    assert "stored\"" not in log
    assert repo.stored == []


def test_consumer_closes_source_when_finished():
    source = QueueMessageSource(read_timeout=1)
    consumer = OrdersConsumer(source, RecordingRepo(), Logger("info", io.StringIO()))
    thread = run_consumer(consumer)
    consumer.stop()
    thread.join(5)

    assert not thread.is_alive()
    with pytest.raises(ConnectionError):
        source.read_message()


def test_stop_before_start_makes_start_return():
    source = QueueMessageSource(read_timeout=1)
    repo = RecordingRepo()
    stream = io.StringIO()
    consumer = OrdersConsumer(source, repo, Logger("info", stream))
    consumer.stop()
    consumer.start()

    assert "Consumer stopped by context cancel" in stream.getvalue()
    assert repo.stored == []