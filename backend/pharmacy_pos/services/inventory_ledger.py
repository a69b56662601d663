# Overview: Service-layer stock reservation; the only writer of Product.quantity during checkout.

"""
Inventory Ledger

Stock Invariants (authoritative)

- Product.quantity is never negative, not even transiently.
- Every decrement is ONE conditional UPDATE evaluated by the database:
      UPDATE products
         SET quantity = quantity - :n, version_id = version_id + 1
       WHERE id = :id AND store_id = :store AND quantity >= :n
  A read-then-write pair would let two concurrent checkouts both see enough
  stock and both decrement.
- A zero rowcount is disambiguated afterwards: missing (or foreign-store)
  product -> NotFoundError, otherwise InsufficientStockError.
- version_id is bumped so ORM writers holding a stale copy of the row get
  StaleDataError instead of overwriting the decrement.
- Nothing here commits. The caller owns the unit of work.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date

from sqlalchemy import select, update
from sqlalchemy.orm.exc import StaleDataError

from ..errors import InsufficientStockError, NotFoundError, ValidationError
from ..models import Product
from .concurrency import lock_for_update

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProductSnapshot:
    """Product state captured at the instant its stock was reserved."""
    product_id: int
    name: str
    sku: str
    cost_price_paise: int
    mrp_paise: int
    batch_number: str | None
    expiry_date: date | None
    quantity_remaining: int


class InventoryLedger:
    def __init__(self, session):
        self.session = session

    def _stock_row(self, store_id: int, product_id: int):
        # Column select: reads the database, never an ORM copy cached in the session
        return self.session.execute(
            select(Product.id, Product.name, Product.quantity)
            .where(Product.id == product_id, Product.store_id == store_id)
        ).one_or_none()

    def _snapshot(self, store_id: int, product_id: int) -> ProductSnapshot:
        row = self.session.execute(
            select(
                Product.id,
                Product.name,
                Product.sku,
                Product.cost_price_paise,
                Product.mrp_paise,
                Product.batch_number,
                Product.expiry_date,
                Product.quantity,
            ).where(Product.id == product_id, Product.store_id == store_id)
        ).one()
        return ProductSnapshot(
            product_id=row.id,
            name=row.name,
            sku=row.sku,
            cost_price_paise=row.cost_price_paise,
            mrp_paise=row.mrp_paise,
            batch_number=row.batch_number,
            expiry_date=row.expiry_date,
            quantity_remaining=row.quantity,
        )

    def reserve_and_decrement(self, store_id: int, product_id: int, quantity: int) -> ProductSnapshot:
        """
        Atomically take quantity units of a product out of stock.

        Returns the product snapshot (cost, mrp, batch, expiry) as of the
        decrement. Raises NotFoundError or InsufficientStockError.
        """
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise ValidationError("quantity must be a positive integer", details={"product_id": product_id})

        stmt = (
            update(Product)
            .where(
                Product.id == product_id,
                Product.store_id == store_id,
                Product.quantity >= quantity,
            )
            .values(
                quantity=Product.quantity - quantity,
                version_id=Product.version_id + 1,
            )
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)

        if result.rowcount != 1:
            product = self._stock_row(store_id, product_id)
            if product is None:
                raise NotFoundError(
                    "Product not found",
                    details={"product_id": product_id},
                )
            raise InsufficientStockError(
                product_id=product.id,
                product_name=product.name,
                available=product.quantity,
                requested=quantity,
            )

        snapshot = self._snapshot(store_id, product_id)
        logger.debug(
            "Reserved %d of product %s in store %s (remaining %d)",
            quantity, product_id, store_id, snapshot.quantity_remaining,
        )
        return snapshot

    def restock(self, store_id: int, product_id: int, quantity: int) -> int:
        """
        Atomically add received units. Returns the new quantity on hand.
        """
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise ValidationError("quantity must be a positive integer", details={"product_id": product_id})

        result = self.session.execute(
            update(Product)
            .where(Product.id == product_id, Product.store_id == store_id)
            .values(
                quantity=Product.quantity + quantity,
                version_id=Product.version_id + 1,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise NotFoundError("Product not found", details={"product_id": product_id})
        return self._snapshot(store_id, product_id).quantity_remaining

    def adjust_to(self, store_id: int, product_id: int, quantity: int) -> int:
        """
        Set quantity on hand to an absolute counted value (stock take).

        The row is locked and the write is conditioned on the version that
        was read, so a checkout landing in between is never overwritten.
        """
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 0:
            raise ValidationError("quantity must be a non-negative integer", details={"product_id": product_id})

        current = self.session.execute(
            lock_for_update(
                select(Product.version_id).where(Product.id == product_id, Product.store_id == store_id)
            )
        ).scalar_one_or_none()
        if current is None:
            raise NotFoundError("Product not found", details={"product_id": product_id})

        result = self.session.execute(
            update(Product)
            .where(
                Product.id == product_id,
                Product.store_id == store_id,
                Product.version_id == current,
            )
            .values(quantity=quantity, version_id=Product.version_id + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise StaleDataError(f"Stock for product {product_id} changed concurrently")
        return quantity
