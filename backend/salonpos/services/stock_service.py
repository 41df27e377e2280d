# Overview: Stock ledger; the only code path that reads-for-decision or writes Product.quantity.

"""
Stock invariants (authoritative)

- Product.quantity is the single source of truth for availability. It is
  never derived from outstanding sales.
- Every availability decision is made on rows locked with
  SELECT ... FOR UPDATE inside the caller's transaction (lock_and_fetch).
- Quantity never goes below zero. A violation is reported as
  InsufficientStock, a validation error on the "products" field, and the
  enclosing transaction is rolled back so nothing partial persists.
- Locks are taken by key set (the product ids of one sale), never by table,
  so sales touching disjoint products proceed in parallel.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping

from ..extensions import db
from ..models import Product
from ..validation import ValidationError
from .concurrency import lock_for_update


class InsufficientStock(ValidationError):
    """Requested quantity exceeds the locked available quantity."""

    def __init__(self, product_name: str, available: int, requested: int | None = None):
        self.product_name = product_name
        self.available = available
        self.requested = requested
        super().__init__(
            f'The requested quantity for "{product_name}" exceeds the available stock ({available}).',
            field="products",
        )


class StockError(Exception):
    """Raised when a stock row cannot be found for the shop."""


@dataclass(frozen=True)
class LockedStock:
    id: int
    name: str
    quantity: int


def lock_and_fetch(product_ids: Iterable[int], shop_id: int) -> dict[int, LockedStock]:
    """
    Lock the shop's product rows for the rest of the transaction and return
    their current stock keyed by product id.

    Ids that do not exist in the shop are simply absent from the result.
    Rows are locked in id order to keep lock acquisition order stable
    between concurrent transactions.
    """
    ids = sorted({int(pid) for pid in product_ids})
    if not ids:
        return {}

    rows = lock_for_update(
        db.session.query(Product)
        .filter(Product.id.in_(ids), Product.shop_id == shop_id)
        .order_by(Product.id)
    ).all()
    return {p.id: LockedStock(id=p.id, name=p.name, quantity=int(p.quantity or 0)) for p in rows}


def check_availability(requested: Mapping[int, int], locked: Mapping[int, LockedStock]) -> None:
    """
    Fail fast on the first product whose requested quantity exceeds its
    locked quantity. Products missing from `locked` are skipped (they were
    not resolved against the shop catalog either).
    """
    for product_id, qty in requested.items():
        row = locked.get(product_id)
        if row is None:
            continue
        if qty > row.quantity:
            raise InsufficientStock(row.name, row.quantity, requested=qty)


def apply_delta(product_id: int, shop_id: int, delta: int) -> int:
    """
    Consume (delta > 0) or restore (delta < 0) stock for one product.

    Re-acquires the row lock. Returns the new quantity.
    """
    product = lock_for_update(
        db.session.query(Product).filter_by(id=product_id, shop_id=shop_id)
    ).one_or_none()
    if product is None:
        raise StockError(f"product {product_id} not found in shop {shop_id}")

    if delta == 0:
        return product.quantity

    new_quantity = int(product.quantity or 0) - delta
    if new_quantity < 0:
        raise InsufficientStock(product.name, int(product.quantity or 0), requested=delta)

    product.quantity = new_quantity
    db.session.flush()
    return new_quantity


def restock(product_id: int, shop_id: int, quantity: int) -> int:
    """Add received units to a product (manual restock)."""
    if quantity <= 0:
        raise ValidationError("quantity must be > 0", field="quantity")
    return apply_delta(product_id, shop_id, -quantity)
