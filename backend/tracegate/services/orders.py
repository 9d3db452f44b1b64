"""Order Service — places and looks up orders against an inventory gateway.

Invariants:
    - Unknown order id → ResourceNotFoundError ("Order <id> not found")
    - Quantity above available stock → BusinessRuleViolationError
    - Stock reads are retried (idempotent); reservations are not
    - reserve() checks and decrements in one step, with no await in between

Design Decisions:
    - In-memory store: persistence is an external collaborator, this service only
      exists to drive real failures through the request pipeline
    - InventoryGateway as Protocol: tests swap in flaky gateways without subclassing
"""

import itertools
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Protocol

from tracegate.core.errors import BusinessRuleViolationError, ResourceNotFoundError
from tracegate.infrastructure.observability import get_logger
from tracegate.infrastructure.retry import RetryPolicy, retry_idempotent

log = get_logger(__name__)


@dataclass
class Order:
    id: int
    sku: str
    quantity: int
    status: str = "placed"


class InventoryGateway(Protocol):
    async def available(self, sku: str) -> int: ...

    async def reserve(self, sku: str, quantity: int) -> None: ...


def _insufficient(sku: str, available: int) -> BusinessRuleViolationError:
    return BusinessRuleViolationError(f"Only {available} unit(s) of {sku} available")


class InMemoryInventory:
    """Process-local stock levels."""

    def __init__(self, stock: Mapping[str, int]):
        self._stock = dict(stock)

    async def available(self, sku: str) -> int:
        return self._stock.get(sku, 0)

    async def reserve(self, sku: str, quantity: int) -> None:
        available = self._stock.get(sku, 0)
        if quantity > available:
            raise _insufficient(sku, available)
        self._stock[sku] = available - quantity


class OrderService:
    """Order placement and lookup."""

    def __init__(self, inventory: InventoryGateway, retry_policy: RetryPolicy):
        self._inventory = inventory
        self._retry_policy = retry_policy
        self._orders: dict[int, Order] = {}
        self._ids = itertools.count(1)

    async def place(self, sku: str, quantity: int) -> Order:
        available = await retry_idempotent(
            lambda: self._inventory.available(sku), self._retry_policy,
        )
        if quantity > available:
            raise _insufficient(sku, available)
        await self._inventory.reserve(sku, quantity)
        order = Order(id=next(self._ids), sku=sku, quantity=quantity)
        self._orders[order.id] = order
        log.information(
            f"Order {order.id} placed",
            {"order_id": order.id, "sku": sku, "quantity": quantity},
        )
        return order

    def get(self, order_id: int) -> Order:
        order = self._orders.get(order_id)
        if order is None:
            raise ResourceNotFoundError("Order", order_id)
        return order
