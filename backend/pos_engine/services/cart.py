# Overview: In-memory cart for the sale in progress; owns merge, update and removal of line items.

"""
Cart invariants:

- line.total is derived from quantity, unit_price and per-line discount on
  every read; it is never stored.
- Lines merge on (product_id, unit_price); a different price opens a new row,
  and a price edit that lands on another row's price folds the two rows.
- Every add and every quantity increase passes the Stock Guard with the
  product's resulting quantity across all of its rows.
- The cart never computes subtotal/discount/total; see pricing_service.
- Nothing here touches the database.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from decimal import Decimal

from ..permissions import OperatorPermissions
from ..validation import (
    OpenPriceRequired,
    PermissionDenied,
    ValidationError,
    ZERO,
    parse_money,
    parse_quantity,
    to_decimal,
)
from . import stock_guard

EDITABLE_FIELDS = {"quantity", "unit_price", "discount"}


@dataclass(frozen=True)
class ProductSnapshot:
    """Catalog fields the cart relies on, copied when the product is scanned."""
    id: int
    name: str
    code: str
    sale_price: Decimal
    wholesale_price: Decimal | None
    cost_price: Decimal
    stock_quantity: Decimal
    is_service: bool
    allow_open_price: bool
    block_sale_no_stock: bool
    commission_percent: Decimal

    @classmethod
    def from_product(cls, product) -> "ProductSnapshot":
        if isinstance(product, cls):
            return product
        if product.id is None or not product.name:
            raise ValidationError("Product must have an id and a name")
        wholesale = product.wholesale_price
        return cls(
            id=product.id,
            name=product.name,
            code=product.code or "",
            sale_price=parse_money("sale_price", product.sale_price or 0),
            wholesale_price=parse_money("wholesale_price", wholesale) if wholesale is not None else None,
            cost_price=parse_money("cost_price", product.cost_price or 0),
            stock_quantity=to_decimal("stock_quantity", product.stock_quantity or 0),
            is_service=bool(product.is_service),
            allow_open_price=bool(product.allow_open_price),
            block_sale_no_stock=bool(product.block_sale_no_stock),
            commission_percent=to_decimal("commission_percent", product.commission_percent or 0),
        )


@dataclass
class LineItem:
    id: int
    product: ProductSnapshot
    quantity: Decimal
    unit_price: Decimal
    cost_price: Decimal
    discount: Decimal = ZERO
    sold_without_stock: bool = False
    is_open_price: bool = False

    @property
    def product_id(self) -> int:
        return self.product.id

    @property
    def product_name(self) -> str:
        return self.product.name

    @property
    def gross(self) -> Decimal:
        return self.quantity * self.unit_price

    @property
    def total(self) -> Decimal:
        return self.gross - self.discount

    @property
    def cost_total(self) -> Decimal:
        return self.quantity * self.cost_price

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": str(self.quantity),
            "unit_price": str(self.unit_price),
            "cost_price": str(self.cost_price),
            "discount": str(self.discount),
            "total": str(self.total),
            "commission_percent": str(self.product.commission_percent),
            "sold_without_stock": self.sold_without_stock,
            "is_open_price": self.is_open_price,
        }


@dataclass
class Cart:
    permissions: OperatorPermissions
    block_sale_no_stock: bool = True
    min_quantity: Decimal = Decimal("0.001")
    lines: list[LineItem] = field(default_factory=list)
    _ids: itertools.count = field(default_factory=lambda: itertools.count(1), repr=False)

    def __len__(self) -> int:
        return len(self.lines)

    def __iter__(self):
        return iter(self.lines)

    @property
    def is_empty(self) -> bool:
        return not self.lines

    def quantity_of(self, product_id: int) -> Decimal:
        return sum((line.quantity for line in self.lines if line.product_id == product_id), ZERO)

    def _find(self, product_id: int, unit_price: Decimal, exclude: LineItem | None = None) -> LineItem | None:
        for line in self.lines:
            if line is not exclude and line.product_id == product_id and line.unit_price == unit_price:
                return line
        return None

    def refresh_product(self, product) -> None:
        """Replace the catalog snapshot on every row of ``product`` (stock may have moved)."""
        snapshot = ProductSnapshot.from_product(product)
        for line in self.lines:
            if line.product_id == snapshot.id:
                line.product = snapshot

    def _resolve_price(self, product: ProductSnapshot, explicit_price, use_wholesale: bool) -> Decimal:
        if explicit_price is not None:
            price = parse_money("unit_price", explicit_price, allow_zero=False)
            if not product.allow_open_price and not self.permissions.can_change_price:
                raise PermissionDenied(
                    "Operator cannot change prices",
                    details={"product_id": product.id},
                )
            return price

        if product.allow_open_price:
            raise OpenPriceRequired(
                f"{product.name} requires a price",
                details={
                    "product_id": product.id,
                    "suggested_price": str(product.sale_price) if product.sale_price else None,
                },
            )

        if use_wholesale and product.wholesale_price:
            return product.wholesale_price
        return product.sale_price

    def add_item(
        self,
        product,
        quantity=1,
        explicit_price=None,
        *,
        use_wholesale: bool = False,
        future_order: bool = False,
        override_confirmed: bool = False,
    ) -> LineItem:
        """
        Add ``quantity`` of ``product``; merges into the (product, price) row if present.

        Raises OpenPriceRequired, StockShortageError or StockConfirmationRequired
        without touching the cart.
        """
        snapshot = ProductSnapshot.from_product(product)
        qty = parse_quantity("quantity", quantity)
        price = self._resolve_price(snapshot, explicit_price, use_wholesale)

        check = stock_guard.evaluate(
            snapshot,
            self.quantity_of(snapshot.id) + qty,
            permissions=self.permissions,
            global_block=self.block_sale_no_stock,
            future_order=future_order,
        )
        overridden = stock_guard.enforce(check, override_confirmed=override_confirmed)
        self.refresh_product(snapshot)

        line = self._find(snapshot.id, price)
        if line is not None:
            line.quantity += qty
            line.sold_without_stock = line.sold_without_stock or overridden
            return line

        line = LineItem(
            id=next(self._ids),
            product=snapshot,
            quantity=qty,
            unit_price=price,
            cost_price=snapshot.cost_price,
            sold_without_stock=overridden,
            is_open_price=snapshot.allow_open_price,
        )
        self.lines.append(line)
        return line

    def update_item(
        self,
        index: int,
        field_name: str,
        value,
        *,
        future_order: bool = False,
        override_confirmed: bool = False,
    ) -> LineItem:
        if not 0 <= index < len(self.lines):
            raise ValidationError("Cart line not found", details={"index": index})
        if field_name not in EDITABLE_FIELDS:
            raise ValidationError(f"Field not editable: {field_name}")

        line = self.lines[index]

        if field_name == "quantity":
            qty = parse_quantity("quantity", max(to_decimal("quantity", value), self.min_quantity))
            if qty > line.quantity:
                check = stock_guard.evaluate(
                    line.product,
                    self.quantity_of(line.product_id) - line.quantity + qty,
                    permissions=self.permissions,
                    global_block=self.block_sale_no_stock,
                    future_order=future_order,
                )
                if stock_guard.enforce(check, override_confirmed=override_confirmed):
                    line.sold_without_stock = True
            line.quantity = qty

        elif field_name == "unit_price":
            if not self.permissions.can_change_price:
                raise PermissionDenied("Operator cannot change prices", details={"index": index})
            line.unit_price = parse_money("unit_price", value)
            twin = self._find(line.product_id, line.unit_price, exclude=line)
            if twin is not None:
                # (product, price) identifies one row; fold the repriced row into it
                twin.quantity += line.quantity
                twin.discount += line.discount
                twin.sold_without_stock = twin.sold_without_stock or line.sold_without_stock
                self.lines.remove(line)
                line = twin

        else:
            discount = parse_money("discount", value)
            if discount > line.gross:
                raise ValidationError(
                    "Line discount cannot exceed the line amount",
                    details={"index": index, "line_amount": str(line.gross)},
                )
            line.discount = discount

        # keep the per-line discount within the (possibly smaller) gross amount
        if line.discount > line.gross:
            line.discount = line.gross
        return line

    def remove_item(self, line_id: int) -> bool:
        """Drop a line by id. Returns False (and changes nothing) when absent."""
        before = len(self.lines)
        self.lines = [line for line in self.lines if line.id != line_id]
        return len(self.lines) != before

    def clear(self) -> None:
        self.lines = []

    def snapshot(self) -> list[dict]:
        return [line.to_dict() for line in self.lines]
