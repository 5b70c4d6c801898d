from __future__ import annotations

from ..extensions import db
from pos_engine.money import money_str, quantity_str
from pos_engine.time_utils import to_utc_z


class Product(db.Model):
    """
    Product master data as seen by the POS.

    LOOKUP PATTERN:
    - code: store-assigned internal code (weighed goods use the 7-digit scale code)
    - barcode: scannable EAN/UPC
    - name: manual search only (case-insensitive substring)

    stock_quantity is a mutable counter (read-then-write at finalize, no
    conflict detection); it may go negative after a privileged override.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("store_id", "code", name="uq_products_store_code"),
        db.Index("ix_products_store_barcode", "store_id", "barcode"),
        db.Index("ix_products_store_name", "store_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    code = db.Column(db.String(64), nullable=False)
    barcode = db.Column(db.String(64), nullable=True)
    name = db.Column(db.String(255), nullable=False)

    sale_price = db.Column(db.Numeric(14, 4), nullable=False, default=0)
    wholesale_price = db.Column(db.Numeric(14, 4), nullable=True)
    cost_price = db.Column(db.Numeric(14, 4), nullable=False, default=0)

    stock_quantity = db.Column(db.Numeric(14, 3), nullable=False, default=0)

    is_service = db.Column(db.Boolean, nullable=False, default=False)
    allow_open_price = db.Column(db.Boolean, nullable=False, default=False)
    block_sale_no_stock = db.Column(db.Boolean, nullable=False, default=False)
    commission_percent = db.Column(db.Numeric(5, 2), nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    store = db.relationship("Store", backref=db.backref("products", lazy=True))

    def __repr__(self) -> str:
        return f"<Product id={self.id} code={self.code!r} name={self.name!r} store_id={self.store_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "code": self.code,
            "barcode": self.barcode,
            "name": self.name,
            "sale_price": money_str(self.sale_price),
            "wholesale_price": money_str(self.wholesale_price),
            "cost_price": money_str(self.cost_price),
            "stock_quantity": quantity_str(self.stock_quantity),
            "is_service": self.is_service,
            "allow_open_price": self.allow_open_price,
            "block_sale_no_stock": self.block_sale_no_stock,
            "commission_percent": str(self.commission_percent),
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Customer(db.Model):
    """
    Customer as consumed by the POS: VIP discount and loyalty balance.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_store_active", "store_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)

    is_vip = db.Column(db.Boolean, nullable=False, default=False)
    vip_discount_percent = db.Column(db.Numeric(5, 2), nullable=False, default=0)

    # Redeemable points balance (accrual is handled outside the POS engine)
    loyalty_points = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    store = db.relationship("Store", backref=db.backref("customers", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "name": self.name,
            "phone": self.phone,
            "is_vip": self.is_vip,
            "vip_discount_percent": str(self.vip_discount_percent),
            "loyalty_points": self.loyalty_points,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class LoyaltyProgram(db.Model):
    """Points redemption rule: each point is worth ``point_value`` currency."""
    __tablename__ = "loyalty_programs"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    name = db.Column(db.String(128), nullable=False)
    point_value = db.Column(db.Numeric(14, 4), nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "name": self.name,
            "point_value": money_str(self.point_value),
            "is_active": self.is_active,
        }


class PaymentMethod(db.Model):
    """
    Tender instrument configuration (cash, debit, credit, pix, ...).

    fee_percent is informational: it is recorded with each payment and never
    added to what the customer owes.
    """
    __tablename__ = "payment_methods"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    name = db.Column(db.String(128), nullable=False)
    fee_percent = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    max_installments = db.Column(db.Integer, nullable=False, default=1)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "name": self.name,
            "fee_percent": str(self.fee_percent),
            "max_installments": self.max_installments,
            "is_active": self.is_active,
        }
