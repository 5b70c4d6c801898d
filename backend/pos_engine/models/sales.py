from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.orm import object_session

from ..extensions import db
from pos_engine.money import money_str, quantity_str
from pos_engine.time_utils import to_utc_z


SALE_STATUS_COMPLETED = "completed"


class ImmutableSaleError(RuntimeError):
    """Raised when code attempts to UPDATE a persisted sale row."""


class Sale(db.Model):
    """
    Completed sale. Immutable once inserted.

    sale_number is unique per store; the finalize protocol detects collisions
    through this constraint and retries with a new number.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("store_id", "sale_number", name="uq_sales_store_sale_number"),
        db.Index("ix_sales_store_created", "store_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    sale_number = db.Column(db.Integer, nullable=False)

    status = db.Column(db.String(16), nullable=False, default=SALE_STATUS_COMPLETED, index=True)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    customer_name = db.Column(db.String(255), nullable=True)
    operator_id = db.Column(db.Integer, db.ForeignKey("operators.id"), nullable=False, index=True)
    register_session_id = db.Column(db.Integer, db.ForeignKey("register_sessions.id"), nullable=False, index=True)

    # All amounts are exact Decimals (see Totals)
    subtotal = db.Column(db.Numeric(14, 4), nullable=False)
    vip_discount = db.Column(db.Numeric(14, 4), nullable=False, default=0)
    manual_discount = db.Column(db.Numeric(14, 4), nullable=False, default=0)
    loyalty_discount = db.Column(db.Numeric(14, 4), nullable=False, default=0)
    discount = db.Column(db.Numeric(14, 4), nullable=False, default=0)
    total = db.Column(db.Numeric(14, 4), nullable=False)
    cost_total = db.Column(db.Numeric(14, 4), nullable=False)
    profit = db.Column(db.Numeric(14, 4), nullable=False)

    total_paid = db.Column(db.Numeric(14, 4), nullable=False)
    change_due = db.Column(db.Numeric(14, 4), nullable=False, default=0)

    loyalty_points_redeemed = db.Column(db.Integer, nullable=False, default=0)
    use_wholesale_price = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    store = db.relationship("Store", backref=db.backref("sales", lazy=True))
    lines = db.relationship("SaleLine", back_populates="sale", lazy=True, order_by="SaleLine.position")
    payments = db.relationship("SalePayment", back_populates="sale", lazy=True, order_by="SalePayment.position")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "sale_number": self.sale_number,
            "status": self.status,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "operator_id": self.operator_id,
            "register_session_id": self.register_session_id,
            "subtotal": money_str(self.subtotal),
            "vip_discount": money_str(self.vip_discount),
            "manual_discount": money_str(self.manual_discount),
            "loyalty_discount": money_str(self.loyalty_discount),
            "discount": money_str(self.discount),
            "total": money_str(self.total),
            "cost_total": money_str(self.cost_total),
            "profit": money_str(self.profit),
            "total_paid": money_str(self.total_paid),
            "change_due": money_str(self.change_due),
            "loyalty_points_redeemed": self.loyalty_points_redeemed,
            "use_wholesale_price": self.use_wholesale_price,
            "created_at": to_utc_z(self.created_at),
            "lines": [line.to_dict() for line in self.lines],
            "payments": [payment.to_dict() for payment in self.payments],
        }


@event.listens_for(Sale, "before_update")
def _reject_sale_update(mapper, connection, target):
    session = object_session(target)
    if session is not None and session.is_modified(target, include_collections=False):
        raise ImmutableSaleError(f"Sale {target.id} is immutable once created")


class SaleLine(db.Model):
    """Snapshot of one cart line at finalize time."""
    __tablename__ = "sale_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    product_name = db.Column(db.String(255), nullable=False)

    quantity = db.Column(db.Numeric(14, 3), nullable=False)
    unit_price = db.Column(db.Numeric(14, 4), nullable=False)
    cost_price = db.Column(db.Numeric(14, 4), nullable=False)
    discount = db.Column(db.Numeric(14, 4), nullable=False, default=0)
    # quantity (3 places) x unit_price (4 places), stored without rounding
    total = db.Column(db.Numeric(18, 7), nullable=False)
    commission_percent = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    sold_without_stock = db.Column(db.Boolean, nullable=False, default=False)

    sale = db.relationship("Sale", back_populates="lines")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": quantity_str(self.quantity),
            "unit_price": money_str(self.unit_price),
            "cost_price": money_str(self.cost_price),
            "discount": money_str(self.discount),
            "total": money_str(self.total),
            "commission_percent": str(self.commission_percent),
            "sold_without_stock": self.sold_without_stock,
        }


class SalePayment(db.Model):
    """One tendered instrument of a completed sale."""
    __tablename__ = "sale_payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)
    payment_method_id = db.Column(db.Integer, db.ForeignKey("payment_methods.id"), nullable=False)
    method_name = db.Column(db.String(128), nullable=False)

    amount = db.Column(db.Numeric(14, 4), nullable=False)
    installments = db.Column(db.Integer, nullable=False, default=1)
    fee_percent = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    fee_amount = db.Column(db.Numeric(14, 4), nullable=False, default=0)

    sale = db.relationship("Sale", back_populates="payments")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "payment_method_id": self.payment_method_id,
            "method_name": self.method_name,
            "amount": money_str(self.amount),
            "installments": self.installments,
            "fee_percent": str(self.fee_percent),
            "fee_amount": money_str(self.fee_amount),
        }


class StockMovement(db.Model):
    """
    Append-only stock ledger row.

    quantity_delta is negative for a sale; previous/new stock capture the
    counter as read and as written by this movement.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_reference", "reference_type", "reference_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity_delta = db.Column(db.Numeric(14, 3), nullable=False)
    previous_stock = db.Column(db.Numeric(14, 3), nullable=False)
    new_stock = db.Column(db.Numeric(14, 3), nullable=False)

    reference_type = db.Column(db.String(32), nullable=False)
    reference_id = db.Column(db.Integer, nullable=False)

    operator_id = db.Column(db.Integer, db.ForeignKey("operators.id"), nullable=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "product_id": self.product_id,
            "quantity_delta": quantity_str(self.quantity_delta),
            "previous_stock": quantity_str(self.previous_stock),
            "new_stock": quantity_str(self.new_stock),
            "reference_type": self.reference_type,
            "reference_id": self.reference_id,
            "operator_id": self.operator_id,
            "occurred_at": to_utc_z(self.occurred_at),
        }


class SaleCancellation(db.Model):
    """Audit row for a sale abandoned before commit."""
    __tablename__ = "sale_cancellations"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    operator_id = db.Column(db.Integer, db.ForeignKey("operators.id"), nullable=False)
    register_session_id = db.Column(db.Integer, db.ForeignKey("register_sessions.id"), nullable=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True)

    reason = db.Column(db.String(32), nullable=False)
    notes = db.Column(db.Text, nullable=True)
    items = db.Column(db.JSON, nullable=False)

    subtotal = db.Column(db.Numeric(14, 4), nullable=False)
    discount = db.Column(db.Numeric(14, 4), nullable=False)
    total = db.Column(db.Numeric(14, 4), nullable=False)

    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "operator_id": self.operator_id,
            "register_session_id": self.register_session_id,
            "customer_id": self.customer_id,
            "reason": self.reason,
            "notes": self.notes,
            "items": self.items,
            "subtotal": money_str(self.subtotal),
            "discount": money_str(self.discount),
            "total": money_str(self.total),
            "cancelled_at": to_utc_z(self.cancelled_at),
        }


class FutureOrder(db.Model):
    """
    Deferred-fulfillment order with optional advance payment.

    Not a Sale: no stock movement, no full-payment requirement.
    """
    __tablename__ = "future_orders"
    __table_args__ = (
        db.UniqueConstraint("store_id", "order_number", name="uq_future_orders_store_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    order_number = db.Column(db.Integer, nullable=False)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    operator_id = db.Column(db.Integer, db.ForeignKey("operators.id"), nullable=False)

    items = db.Column(db.JSON, nullable=False)
    total = db.Column(db.Numeric(14, 4), nullable=False)
    advance_payment = db.Column(db.Numeric(14, 4), nullable=False, default=0)
    remaining_payment = db.Column(db.Numeric(14, 4), nullable=False)

    expected_date = db.Column(db.Date, nullable=False)
    notes = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(16), nullable=False, default="pending")  # pending, partial

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "order_number": self.order_number,
            "customer_id": self.customer_id,
            "operator_id": self.operator_id,
            "items": self.items,
            "total": money_str(self.total),
            "advance_payment": money_str(self.advance_payment),
            "remaining_payment": money_str(self.remaining_payment),
            "expected_date": self.expected_date.isoformat() if self.expected_date else None,
            "notes": self.notes,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
        }
