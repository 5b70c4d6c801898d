# Overview: Read-only catalog lookups used by the POS session (products, customers, tenders).

from __future__ import annotations

from sqlalchemy import func, or_

from ..extensions import db
from ..models import Customer, LoyaltyProgram, PaymentMethod, Product
from .barcode_service import DecodedScan


SEARCH_LIMIT = 20


def find_product_by_scan(store_id: int, scan: DecodedScan) -> Product | None:
    """
    Exact match of a decoded scan against barcode, then code.

    Name matching is never used for scans.
    """
    for candidate in scan.candidates():
        base = db.session.query(Product).filter(
            Product.store_id == store_id,
            Product.is_active.is_(True),
        )
        product = base.filter(Product.barcode == candidate).first()
        if product:
            return product
        product = base.filter(Product.code == candidate).first()
        if product:
            return product
    return None


def search_products(store_id: int, term: str, limit: int = SEARCH_LIMIT) -> list[Product]:
    """Manual search: barcode/code exact match or case-insensitive name substring."""
    term = (term or "").strip()
    if not term:
        return []

    escaped = term.lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    pattern = f"%{escaped}%"
    return (
        db.session.query(Product)
        .filter(
            Product.store_id == store_id,
            Product.is_active.is_(True),
            or_(
                Product.barcode == term,
                Product.code == term,
                func.lower(Product.name).like(pattern, escape="\\"),
            ),
        )
        .order_by(Product.name.asc(), Product.id.asc())
        .limit(limit)
        .all()
    )


def get_product(store_id: int, product_id: int) -> Product | None:
    return db.session.query(Product).filter_by(id=product_id, store_id=store_id).first()


def get_customer(store_id: int, customer_id: int) -> Customer | None:
    return (
        db.session.query(Customer)
        .filter_by(id=customer_id, store_id=store_id, is_active=True)
        .first()
    )


def get_active_loyalty_program(store_id: int) -> LoyaltyProgram | None:
    return (
        db.session.query(LoyaltyProgram)
        .filter_by(store_id=store_id, is_active=True)
        .order_by(LoyaltyProgram.id.asc())
        .first()
    )


def get_payment_method(store_id: int, method_id: int) -> PaymentMethod | None:
    return (
        db.session.query(PaymentMethod)
        .filter_by(id=method_id, store_id=store_id, is_active=True)
        .first()
    )


def list_payment_methods(store_id: int) -> list[PaymentMethod]:
    return (
        db.session.query(PaymentMethod)
        .filter_by(store_id=store_id, is_active=True)
        .order_by(PaymentMethod.name.asc())
        .all()
    )
