"""
POS Sales Service - session orchestration and sale finalization

One PosSession per register session and operator (single writer). The cart,
discounts and tenders live in memory until finalize; only the finalize,
future-order and cancel paths write to the database.

Finalize state machine:

    OPEN -> FINALIZING -> OPEN        (committed; session ready for next sale)
    OPEN -> FINALIZING -> FAILED      (numbering exhausted / DB error; cart kept)
    FAILED -> FINALIZING ...          (operator retries) or cancel()

Sale numbers are allocated optimistically (read max, insert, retry on the
unique violation). Stock decrements happen after the sale is committed and
are best-effort: failures are logged and reported, never rolled back.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import FutureOrder, Operator, Sale, SaleCancellation, SaleLine, SalePayment
from ..permissions import OperatorPermissions, UnknownRoleError, build_operator_permissions
from pos_engine.time_utils import parse_iso_date, utcnow
from ..validation import (
    NotFoundError,
    PermissionDenied,
    PosError,
    ProductNotFoundError,
    ValidationError,
    ZERO,
    parse_money,
    to_decimal,
)
from . import barcode_service, catalog_service, register_service
from .cart import Cart, LineItem
from .concurrency import SequenceExhausted, allocate_with_retry
from .payment_service import PaymentLedger, TenderedPayment, finalize_blockers
from .pricing_service import (
    DiscountDecision,
    DiscountState,
    Totals,
    compute_totals,
    parse_discount_type,
    validate_manual_discount,
)
from .sale_repository import SaleRepository
from .settings_service import PosSettings, load_pos_settings


CANCELLATION_REASONS = {
    "customer_gave_up": "Customer gave up",
    "wrong_product": "Wrong product",
    "out_of_stock": "Out of stock",
    "payment_problem": "Payment problem",
    "operator_error": "Operator error",
    "customer_without_money": "Customer without money",
    "wrong_price": "Wrong price",
    "other": "Other reason",
}

REFERENCE_SALE = "sale"


class SaleError(PosError):
    """Raised for sale finalization errors."""


class SaleNumberExhausted(SaleError):
    """Every sale-number attempt collided; the cart is kept for a retry."""

    status_code = 409


class FinalizeState(str, Enum):
    OPEN = "open"
    FINALIZING = "finalizing"
    FAILED = "failed"


@dataclass(frozen=True)
class CustomerSnapshot:
    id: int
    name: str
    is_vip: bool
    vip_discount_percent: Decimal
    loyalty_points: int

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "is_vip": self.is_vip,
            "vip_discount_percent": str(self.vip_discount_percent),
            "loyalty_points": self.loyalty_points,
        }


@dataclass(frozen=True)
class StockWriteFailure:
    product_id: int
    product_name: str
    quantity: Decimal
    error: str

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": str(self.quantity),
            "error": self.error,
        }


@dataclass
class FinalizedSale:
    sale: Sale
    stock_failures: list[StockWriteFailure] = field(default_factory=list)

    @property
    def stock_complete(self) -> bool:
        return not self.stock_failures

    def to_dict(self) -> dict:
        return {
            "sale": self.sale.to_dict(),
            "stock_complete": self.stock_complete,
            "stock_failures": [f.to_dict() for f in self.stock_failures],
        }


class PosSession:
    def __init__(
        self,
        *,
        store_id: int,
        operator_id: int,
        permissions: OperatorPermissions,
        settings: PosSettings,
        register_session_id: int | None = None,
        loyalty_point_value: Decimal | None = None,
        repository: SaleRepository | None = None,
    ):
        self.store_id = store_id
        self.operator_id = operator_id
        self.permissions = permissions
        self.settings = settings
        self.register_session_id = register_session_id
        self.loyalty_point_value = loyalty_point_value
        self.repository = repository or SaleRepository()

        self.cart = Cart(
            permissions=permissions,
            block_sale_no_stock=settings.block_sale_no_stock,
            min_quantity=settings.min_quantity,
        )
        self.discounts = DiscountState()
        self.payments = PaymentLedger()
        self.customer: CustomerSnapshot | None = None
        self.use_wholesale = False
        self.future_order = False

        self.state = FinalizeState.OPEN
        self.next_sale_number_hint: int | None = None
        self.last_sale_id: int | None = None

    # ------------------------------------------------------------------
    # session context
    # ------------------------------------------------------------------

    def refresh_settings(self) -> PosSettings:
        """Re-fetch the settings snapshot; the cart keeps its lines."""
        self.settings = load_pos_settings(self.store_id)
        self.cart.block_sale_no_stock = self.settings.block_sale_no_stock
        self.cart.min_quantity = self.settings.min_quantity
        return self.settings

    def refresh_register(self) -> int | None:
        session = register_service.find_open_session(
            self.store_id, self.operator_id, self.settings.cash_register_mode
        )
        self.register_session_id = session.id if session else None
        return self.register_session_id

    def _require_editable(self) -> None:
        if self.state is FinalizeState.FINALIZING:
            raise SaleError("Sale is being finalized")
        if self.state is FinalizeState.FAILED:
            self.state = FinalizeState.OPEN

    def _require_register(self) -> None:
        if self.register_session_id is None:
            raise ValidationError("Cash register is not open")

    # ------------------------------------------------------------------
    # cart
    # ------------------------------------------------------------------

    def scan(self, raw: str, *, explicit_price=None, override_confirmed: bool = False) -> LineItem:
        scan = barcode_service.decode(
            raw,
            prefix=self.settings.scanner_prefix,
            suffix=self.settings.scanner_suffix,
        )
        if scan is None:
            raise ProductNotFoundError("Product not found", details={"code": raw})

        product = catalog_service.find_product_by_scan(self.store_id, scan)
        if product is None:
            raise ProductNotFoundError("Product not found", details={"code": scan.raw})

        return self.add_item(
            product,
            scan.quantity,
            explicit_price,
            override_confirmed=override_confirmed,
        )

    def search(self, term: str):
        return catalog_service.search_products(self.store_id, term)

    def add_item(self, product, quantity=1, explicit_price=None, *, override_confirmed: bool = False) -> LineItem:
        self._require_editable()
        self._require_register()
        line = self.cart.add_item(
            product,
            quantity,
            explicit_price,
            use_wholesale=self.use_wholesale,
            future_order=self.future_order,
            override_confirmed=override_confirmed,
        )
        if line.sold_without_stock and override_confirmed:
            current_app.logger.warning(
                "Operator %s sold %s without stock (line %s)",
                self.operator_id, line.product_name, line.id,
            )
        return line

    def update_item(self, index: int, field_name: str, value, *, override_confirmed: bool = False) -> LineItem:
        self._require_editable()
        if field_name == "quantity" and 0 <= index < len(self.cart):
            product = catalog_service.get_product(self.store_id, self.cart.lines[index].product_id)
            if product is not None:
                self.cart.refresh_product(product)
        return self.cart.update_item(
            index,
            field_name,
            value,
            future_order=self.future_order,
            override_confirmed=override_confirmed,
        )

    def remove_item(self, line_id: int) -> bool:
        self._require_editable()
        return self.cart.remove_item(line_id)

    def set_wholesale(self, enabled: bool) -> None:
        self._require_editable()
        self.use_wholesale = bool(enabled)

    def set_future_order(self, enabled: bool) -> None:
        self._require_editable()
        self.future_order = bool(enabled)

    # ------------------------------------------------------------------
    # customer and discounts
    # ------------------------------------------------------------------

    def attach_customer(self, customer_id: int) -> CustomerSnapshot:
        self._require_editable()
        customer = catalog_service.get_customer(self.store_id, customer_id)
        if customer is None:
            raise NotFoundError("Customer not found", details={"customer_id": customer_id})

        vip_percent = Decimal(customer.vip_discount_percent or 0)
        if not customer.is_vip or vip_percent <= ZERO:
            vip_percent = ZERO

        self.customer = CustomerSnapshot(
            id=customer.id,
            name=customer.name,
            is_vip=bool(customer.is_vip),
            vip_discount_percent=vip_percent,
            loyalty_points=int(customer.loyalty_points or 0),
        )
        self.discounts.vip_percent = vip_percent
        self.discounts.loyalty_points = 0
        return self.customer

    def detach_customer(self) -> None:
        self._require_editable()
        self.customer = None
        self.discounts.vip_percent = ZERO
        self.discounts.loyalty_points = 0

    def set_manual_discount(self, value, discount_type="percent") -> DiscountDecision:
        """Validate and store a manual discount; clamps above the operator's cap."""
        self._require_editable()
        dtype = parse_discount_type(discount_type)
        subtotal = self.totals().subtotal
        decision = validate_manual_discount(value, dtype, subtotal, self.permissions)
        self.discounts.manual_type = dtype
        self.discounts.manual_value = decision.accepted
        if decision.clamped:
            current_app.logger.info(
                "Manual discount clamped for operator %s: requested %s, accepted %s",
                self.operator_id, decision.requested, decision.accepted,
            )
        return decision

    def redeem_points(self, points) -> int:
        self._require_editable()
        if self.customer is None:
            raise ValidationError("Select a customer to redeem points")
        if self.loyalty_point_value is None:
            raise ValidationError("No active loyalty program")
        if isinstance(points, bool) or not isinstance(points, int):
            raise ValidationError("points must be an integer")
        if points < 0:
            raise ValidationError("points cannot be negative")
        if points > self.customer.loyalty_points:
            raise ValidationError(
                "Customer does not have enough points",
                details={"available": self.customer.loyalty_points},
            )
        self.discounts.loyalty_points = points
        return points

    def totals(self) -> Totals:
        return compute_totals(
            self.cart.lines,
            self.discounts,
            self.permissions,
            self.loyalty_point_value or ZERO,
        )

    # ------------------------------------------------------------------
    # payments
    # ------------------------------------------------------------------

    def add_payment(self, method_id: int | None, amount, installments=1) -> TenderedPayment:
        self._require_editable()
        method = None
        if method_id is not None:
            method = catalog_service.get_payment_method(self.store_id, method_id)
            if method is None:
                raise NotFoundError("Payment method not found", details={"method_id": method_id})
        return self.payments.add_payment(method, amount, installments)

    def remove_payment(self, index: int) -> TenderedPayment:
        self._require_editable()
        return self.payments.remove_payment(index)

    def summary(self) -> dict:
        totals = self.totals()
        return {
            "state": self.state.value,
            "store_id": self.store_id,
            "operator_id": self.operator_id,
            "register_session_id": self.register_session_id,
            "customer": self.customer.to_dict() if self.customer else None,
            "use_wholesale": self.use_wholesale,
            "future_order": self.future_order,
            "items": self.cart.snapshot(),
            "discount_state": {
                "manual_value": str(self.discounts.manual_value),
                "manual_type": self.discounts.manual_type.value,
                "vip_percent": str(self.discounts.vip_percent),
                "loyalty_points": self.discounts.loyalty_points,
            },
            "totals": totals.to_dict(),
            "payment": self.payments.summary(totals.total),
            "permissions": self.permissions.to_dict(),
            "next_sale_number_hint": self.next_sale_number_hint,
        }

    # ------------------------------------------------------------------
    # terminal paths
    # ------------------------------------------------------------------

    def _build_sale(self, number: int, totals: Totals, lines: list[LineItem], payments: list[TenderedPayment]) -> Sale:
        total_paid = sum((p.amount for p in payments), ZERO)
        sale = Sale(
            store_id=self.store_id,
            sale_number=number,
            customer_id=self.customer.id if self.customer else None,
            customer_name=self.customer.name if self.customer else None,
            operator_id=self.operator_id,
            register_session_id=self.register_session_id,
            subtotal=totals.subtotal,
            vip_discount=totals.vip_discount,
            manual_discount=totals.manual_discount,
            loyalty_discount=totals.loyalty_discount,
            discount=totals.discount,
            total=totals.total,
            cost_total=totals.cost_total,
            profit=totals.profit,
            total_paid=total_paid,
            change_due=max(ZERO, total_paid - totals.total),
            loyalty_points_redeemed=self.discounts.loyalty_points,
            use_wholesale_price=self.use_wholesale,
            created_at=utcnow(),
        )
        for position, line in enumerate(lines, start=1):
            sale.lines.append(SaleLine(
                position=position,
                product_id=line.product_id,
                product_name=line.product_name,
                quantity=line.quantity,
                unit_price=line.unit_price,
                cost_price=line.cost_price,
                discount=line.discount,
                total=line.total,
                commission_percent=line.product.commission_percent,
                sold_without_stock=line.sold_without_stock,
            ))
        for position, payment in enumerate(payments, start=1):
            sale.payments.append(SalePayment(
                position=position,
                payment_method_id=payment.method_id,
                method_name=payment.method_name,
                amount=payment.amount,
                installments=payment.installments,
                fee_percent=payment.fee_percent,
                fee_amount=payment.fee,
            ))
        return sale

    def _log_conflict(self, attempt: int, number: int) -> None:
        current_app.logger.warning(
            "Sale number %s already taken in store %s (attempt %s); retrying",
            number, self.store_id, attempt + 1,
        )

    def _apply_stock(self, sale_id: int, lines: list[LineItem]) -> list[StockWriteFailure]:
        failures = []
        for line in lines:
            if line.product.is_service:
                continue
            try:
                previous, new = self.repository.decrement_stock(line.product_id, line.quantity)
                self.repository.create_stock_movement(
                    store_id=self.store_id,
                    product_id=line.product_id,
                    quantity_delta=-line.quantity,
                    previous_stock=previous,
                    new_stock=new,
                    reference_type=REFERENCE_SALE,
                    reference_id=sale_id,
                    operator_id=self.operator_id,
                )
            except (SQLAlchemyError, LookupError) as exc:
                db.session.rollback()
                current_app.logger.exception(
                    "Stock update failed for sale %s, product %s; sale stands, inventory needs reconciliation",
                    sale_id, line.product_id,
                )
                failures.append(StockWriteFailure(
                    product_id=line.product_id,
                    product_name=line.product_name,
                    quantity=line.quantity,
                    error=str(exc),
                ))
        return failures

    def finalize(self) -> FinalizedSale:
        """
        Commit the sale: number it, persist it, then decrement stock.

        Raises:
            ValidationError: preconditions failed (nothing changed)
            SaleNumberExhausted: every numbering attempt collided (cart kept)
            SaleError: the sale could not be persisted (cart kept)
        """
        self._require_editable()
        if self.future_order:
            raise ValidationError("Future orders are completed with create_future_order")

        totals = self.totals()
        register_id = self.register_session_id
        if not register_service.is_session_open(register_id):
            register_id = None
        blockers = finalize_blockers(
            total=totals.total,
            total_paid=self.payments.total_paid,
            line_count=len(self.cart),
            register_session_id=register_id,
        )
        if blockers:
            raise ValidationError(blockers[0], details={"problems": blockers})

        self.state = FinalizeState.FINALIZING
        lines = list(self.cart.lines)
        payments = self.payments.payments

        try:
            sale = allocate_with_retry(
                lambda: self.repository.max_sale_number(self.store_id),
                lambda number: self.repository.insert_sale(
                    self._build_sale(number, totals, lines, payments)
                ),
                attempts=self.settings.sale_number_attempts,
                on_conflict=self._log_conflict,
            )
        except SequenceExhausted as exc:
            self.state = FinalizeState.FAILED
            current_app.logger.error(
                "Sale numbering exhausted in store %s after %s attempts (%s)",
                self.store_id, exc.attempts, exc.proposed,
            )
            raise SaleNumberExhausted(
                "Could not assign a sale number, please retry",
                details={"attempts": exc.attempts, "proposed": exc.proposed},
            )
        except SQLAlchemyError as exc:
            db.session.rollback()
            self.state = FinalizeState.FAILED
            current_app.logger.exception("Failed to save sale in store %s", self.store_id)
            raise SaleError("Could not save the sale", details={"error": exc.__class__.__name__})

        sale_id = sale.id
        sale_number = sale.sale_number
        failures = self._apply_stock(sale_id, lines)

        current_app.logger.info(
            "Sale #%s (id=%s) completed in store %s by operator %s",
            sale_number, sale_id, self.store_id, self.operator_id,
        )

        self.next_sale_number_hint = sale_number + 1
        self.last_sale_id = sale_id
        self._reset()
        return FinalizedSale(sale=db.session.get(Sale, sale_id), stock_failures=failures)

    def create_future_order(self, expected_date, notes: str | None = None, advance_payment=None) -> FutureOrder:
        """
        Deferred-fulfillment path: customer and expected date required,
        full payment not required, stock untouched.
        """
        self._require_editable()
        if self.cart.is_empty:
            raise ValidationError("Cart is empty")
        if self.customer is None:
            raise ValidationError("Select a customer for a future order")

        if isinstance(expected_date, date):
            expected = expected_date
        else:
            try:
                expected = parse_iso_date(expected_date)
            except (AttributeError, TypeError, ValueError):
                raise ValidationError("expected_date must be an ISO date (YYYY-MM-DD)")
        if expected is None:
            raise ValidationError("Expected delivery date is required")

        totals = self.totals()
        if advance_payment is None:
            advance = min(self.payments.total_paid, totals.total)
        else:
            advance = parse_money("advance_payment", advance_payment)
        if advance > totals.total:
            raise ValidationError("Advance payment cannot exceed the order total")

        items = self.cart.snapshot()
        self.state = FinalizeState.FINALIZING

        def _insert(number: int) -> FutureOrder:
            return self.repository.insert_future_order(FutureOrder(
                store_id=self.store_id,
                order_number=number,
                customer_id=self.customer.id,
                operator_id=self.operator_id,
                items=items,
                total=totals.total,
                advance_payment=advance,
                remaining_payment=totals.total - advance,
                expected_date=expected,
                notes=notes,
                status="partial" if advance > ZERO else "pending",
                created_at=utcnow(),
            ))

        try:
            order = allocate_with_retry(
                lambda: self.repository.max_future_order_number(self.store_id),
                _insert,
                attempts=self.settings.sale_number_attempts,
            )
        except SequenceExhausted as exc:
            self.state = FinalizeState.FAILED
            raise SaleNumberExhausted(
                "Could not assign an order number, please retry",
                details={"attempts": exc.attempts, "proposed": exc.proposed},
            )
        except SQLAlchemyError as exc:
            db.session.rollback()
            self.state = FinalizeState.FAILED
            current_app.logger.exception("Failed to save future order in store %s", self.store_id)
            raise SaleError("Could not save the future order", details={"error": exc.__class__.__name__})

        current_app.logger.info(
            "Future order #%s created in store %s for customer %s",
            order.order_number, self.store_id, order.customer_id,
        )
        self._reset()
        return order

    def cancel(self, reason: str | None = None, notes: str | None = None) -> SaleCancellation | None:
        """
        Abandon the sale in progress. With a reason, an audit row is written
        first; if that write fails the cart is kept.
        """
        self._require_editable()

        cancellation = None
        if reason is not None:
            if reason not in CANCELLATION_REASONS:
                raise ValidationError(
                    f"Invalid cancellation reason: {reason}",
                    details={"allowed": sorted(CANCELLATION_REASONS)},
                )
            totals = self.totals()
            cancellation = self.repository.record_cancellation(SaleCancellation(
                store_id=self.store_id,
                operator_id=self.operator_id,
                register_session_id=self.register_session_id,
                customer_id=self.customer.id if self.customer else None,
                reason=reason,
                notes=notes,
                items=self.cart.snapshot(),
                subtotal=totals.subtotal,
                discount=totals.discount,
                total=totals.total,
                cancelled_at=utcnow(),
            ))
            current_app.logger.info(
                "Sale cancelled in store %s by operator %s (%s)",
                self.store_id, self.operator_id, CANCELLATION_REASONS[reason],
            )

        self._reset()
        return cancellation

    def _reset(self) -> None:
        self.cart.clear()
        self.payments.clear()
        self.discounts.reset()
        self.customer = None
        self.future_order = False
        self.state = FinalizeState.OPEN


def start_session(store_id: int, operator_id: int, *, repository: SaleRepository | None = None) -> PosSession:
    """
    Build a POS session: operator capabilities, settings snapshot, loyalty
    program and the open register session are resolved once, here.
    """
    operator = db.session.get(Operator, operator_id)
    if operator is None or operator.store_id != store_id:
        raise NotFoundError("Operator not found", details={"operator_id": operator_id})
    if not operator.is_active:
        raise PermissionDenied("Operator is inactive")

    try:
        permissions = build_operator_permissions(operator)
    except UnknownRoleError as exc:
        raise PermissionDenied(str(exc))

    settings = load_pos_settings(store_id)
    program = catalog_service.get_active_loyalty_program(store_id)
    point_value = to_decimal("point_value", program.point_value) if program else None

    session = PosSession(
        store_id=store_id,
        operator_id=operator_id,
        permissions=permissions,
        settings=settings,
        loyalty_point_value=point_value,
        repository=repository,
    )
    session.refresh_register()
    return session
