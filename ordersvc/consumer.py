"""Consumer that reads order messages and stores them."""

from __future__ import annotations

import queue
import threading
import time
from datetime import timedelta
from typing import Protocol, runtime_checkable

from ordersvc.entity import order_from_json
from ordersvc.logger import Logger
from ordersvc.persistent import OrdersRepo

_DEFAULT_READ_TIMEOUT = 120.0
_POLL_INTERVAL = 0.05


@runtime_checkable
class MessageSource(Protocol):
    """A stream of raw order messages."""

    def read_message(self) -> bytes: ...

    def close(self) -> None: ...


class QueueMessageSource:
    """In-process message source backed by a thread-safe queue."""

    def __init__(self, read_timeout: timedelta | float = _DEFAULT_READ_TIMEOUT) -> None:
        self.read_timeout = (
            read_timeout.total_seconds() if isinstance(read_timeout, timedelta) else float(read_timeout)
        )
        self._queue: queue.Queue[bytes] = queue.Queue()
        self._closed = threading.Event()

    def put(self, value: bytes | str) -> None:
        """Publish a message; text is encoded as UTF-8."""
        if self._closed.is_set():
            raise ConnectionError("message source is closed")
        self._queue.put(value.encode("utf-8") if isinstance(value, str) else bytes(value))

    def read_message(self) -> bytes:
        """Return the next message; raises TimeoutError or ConnectionError when none can be read."""
        deadline = time.monotonic() + self.read_timeout
        while True:
            if self._closed.is_set():
                raise ConnectionError("message source is closed")
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise TimeoutError(f"read message: no message within {self.read_timeout:g}s")
            try:
                return self._queue.get(timeout=min(remaining, _POLL_INTERVAL))
            except queue.Empty:
                continue

    def close(self) -> None:
        """Close the source; pending and later reads fail."""
        self._closed.set()


class OrdersConsumer:
    """Decodes order messages and stores them until stopped."""

    def __init__(self, source: MessageSource, repo: OrdersRepo, logger: Logger) -> None:
        self._source = source
        self._repo = repo
        self._logger = logger
        self._stopped = threading.Event()

    def start(self) -> None:
        """Consume messages until stop() is called, then close the source."""
        try:
            while not self._stopped.is_set():
                try:
                    payload = self._source.read_message()
                except Exception as exc:
                    self._logger.error(exc, "Consumer - Start - c.k.ReadMessage")
                    continue

                try:
                    order = order_from_json(payload)
                except ValueError as exc:
                    self._logger.error(exc, "Consumer - Start - json.Unmarshal")
                    continue

                try:
                    self._repo.store(order)
                except Exception as exc:
                    self._logger.error(exc, "Consumer - Start - c.r.Store")
                    continue

                self._logger.info(f"Order {order.order_uid} stored")
            self._logger.info("Consumer stopped by context cancel")
        finally:
            try:
                self._source.close()
            except Exception as exc:
                self._logger.error(exc, "Consumer - Start - c.k.Close")

    def stop(self) -> None:
        """Ask the consumer loop to finish and interrupt a pending read."""
        self._stopped.set()
        try:
            self._source.close()
        except Exception as exc:
            self._logger.error(exc, "Consumer - Stop - c.k.Close")