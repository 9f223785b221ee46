"""Order lookup use case."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from ordersvc.entity import Order
from ordersvc.persistent import OrdersRepo


@runtime_checkable
class Orders(Protocol):
    """Anything that can look up an order by its UID."""

    def order(self, order_uid: str) -> Order: ...


class OrdersUseCase:
    """Looks up orders through a repository."""

    def __init__(self, repo: OrdersRepo) -> None:
        self._repo = repo

    def order(self, order_uid: str) -> Order:
        """Return the order; RecordNotFoundError and storage errors propagate."""
        return self._repo.get_order(order_uid)