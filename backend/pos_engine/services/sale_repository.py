# Overview: Persistence boundary for sale finalization; every method is its own committed unit.

"""
Persistence boundary invariants:

- Each call commits on its own. Sale insert, stock update and stock
  movement are NOT one transaction; callers must tolerate a committed sale
  whose stock writes failed.
- Unique violations on the per-store sequence columns surface as
  SequenceConflict (session rolled back); other errors propagate.
- Stock is read-then-written without conflict detection; concurrent
  registers can lose an update.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import FutureOrder, Product, Sale, SaleCancellation, StockMovement
from pos_engine.time_utils import utcnow
from .concurrency import SequenceConflict, run_with_retry


def _is_sequence_violation(exc: IntegrityError, column: str) -> bool:
    message = str(getattr(exc, "orig", exc)).lower()
    return column in message


class SaleRepository:
    def max_sale_number(self, store_id: int) -> int:
        value = (
            db.session.query(func.max(Sale.sale_number))
            .filter(Sale.store_id == store_id)
            .scalar()
        )
        return int(value or 0)

    def insert_sale(self, sale: Sale) -> Sale:
        db.session.add(sale)
        try:
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            if _is_sequence_violation(exc, "sale_number"):
                raise SequenceConflict(sale.sale_number)
            raise
        return sale

    def max_future_order_number(self, store_id: int) -> int:
        value = (
            db.session.query(func.max(FutureOrder.order_number))
            .filter(FutureOrder.store_id == store_id)
            .scalar()
        )
        return int(value or 0)

    def insert_future_order(self, order: FutureOrder) -> FutureOrder:
        db.session.add(order)
        try:
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            if _is_sequence_violation(exc, "order_number"):
                raise SequenceConflict(order.order_number)
            raise
        return order

    def decrement_stock(self, product_id: int, quantity: Decimal) -> tuple[Decimal, Decimal]:
        """Read the current stock, write stock - quantity. Returns (previous, new)."""
        def _op():
            current = (
                db.session.query(Product.stock_quantity)
                .filter(Product.id == product_id)
                .scalar()
            )
            if current is None:
                raise LookupError(f"Product {product_id} not found")
            previous = Decimal(current)
            new = previous - quantity
            db.session.execute(
                update(Product)
                .where(Product.id == product_id)
                .values(stock_quantity=new, updated_at=utcnow())
            )
            db.session.commit()
            return previous, new

        return run_with_retry(_op)

    def create_stock_movement(
        self,
        *,
        store_id: int,
        product_id: int,
        quantity_delta: Decimal,
        previous_stock: Decimal,
        new_stock: Decimal,
        reference_type: str,
        reference_id: int,
        operator_id: int | None = None,
    ) -> StockMovement:
        movement = StockMovement(
            store_id=store_id,
            product_id=product_id,
            quantity_delta=quantity_delta,
            previous_stock=previous_stock,
            new_stock=new_stock,
            reference_type=reference_type,
            reference_id=reference_id,
            operator_id=operator_id,
            occurred_at=utcnow(),
        )

        def _op():
            db.session.add(movement)
            db.session.commit()
            return movement

        return run_with_retry(_op)

    def record_cancellation(self, cancellation: SaleCancellation) -> SaleCancellation:
        db.session.add(cancellation)
        db.session.commit()
        return cancellation
