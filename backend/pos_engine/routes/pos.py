# Overview: Flask API routes for the point-of-sale session; parses input and returns JSON responses.

# backend/pos_engine/routes/pos.py
"""POS session API routes (one in-memory session per operator)"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_operator
from ..extensions import db
from ..models import Sale
from ..services import catalog_service, register_service, sales_service
from ..services.sales_service import PosSession
from ..validation import NotFoundError, PosError


pos_bp = Blueprint("pos", __name__, url_prefix="/api/pos")


def _sessions() -> dict:
    return current_app.extensions.setdefault("pos_sessions", {})


def _current_session() -> PosSession:
    session = _sessions().get(g.operator.id)
    if session is None or session.store_id != g.store_id:
        raise NotFoundError("No active POS session; start one first")
    return session


def _error(e: PosError):
    return jsonify({"error": e.message, "details": e.details}), e.status_code


def _confirmed(data: dict) -> bool:
    return bool(data.get("confirm", False))


# =============================================================================
# SESSION
# =============================================================================

@pos_bp.post("/session")
@require_operator
def start_session_route():
    """
    Start (or restart) the operator's POS session.

    Any sale in progress for this operator is discarded.
    """
    try:
        session = sales_service.start_session(g.store_id, g.operator.id)
        _sessions()[g.operator.id] = session
        current_app.logger.info(
            "POS session started for operator %s in store %s (register session %s)",
            g.operator.id, g.store_id, session.register_session_id,
        )
        return jsonify({"session": session.summary()}), 201

    except PosError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to start POS session")
        return jsonify({"error": "Internal server error"}), 500


@pos_bp.get("/session")
@require_operator
def get_session_route():
    try:
        return jsonify({"session": _current_session().summary()}), 200
    except PosError as e:
        return _error(e)


@pos_bp.delete("/session")
@require_operator
def end_session_route():
    _sessions().pop(g.operator.id, None)
    return jsonify({"ended": True}), 200


@pos_bp.post("/session/refresh")
@require_operator
def refresh_session_route():
    """Re-read settings and the open register session."""
    try:
        session = _current_session()
        session.refresh_settings()
        session.refresh_register()
        return jsonify({"session": session.summary()}), 200

    except PosError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to refresh POS session")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# CART
# =============================================================================

@pos_bp.post("/scan")
@require_operator
def scan_route():
    """
    Add a product by scanned code (barcode, internal code or scale label).

    Returns 404 when nothing matches, 409 when the product needs a price or
    the operator must confirm selling beyond stock.
    """
    try:
        data = request.get_json() or {}
        code = data.get("code")
        if not code:
            return jsonify({"error": "code required"}), 400

        session = _current_session()
        line = session.scan(str(code), explicit_price=data.get("price"), override_confirmed=_confirmed(data))
        return jsonify({"line": line.to_dict(), "totals": session.totals().to_dict()}), 201

    except PosError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to scan product")
        return jsonify({"error": "Internal server error"}), 500


@pos_bp.get("/products")
@require_operator
def search_products_route():
    try:
        term = request.args.get("q", "")
        products = _current_session().search(term)
        return jsonify({"products": [p.to_dict() for p in products]}), 200
    except PosError as e:
        return _error(e)


@pos_bp.post("/items")
@require_operator
def add_item_route():
    try:
        data = request.get_json() or {}
        product_id = data.get("product_id")
        if not product_id:
            return jsonify({"error": "product_id required"}), 400

        session = _current_session()
        product = catalog_service.get_product(session.store_id, product_id)
        if product is None or not product.is_active:
            return jsonify({"error": "Product not found"}), 404

        line = session.add_item(
            product,
            data.get("quantity", 1),
            data.get("price"),
            override_confirmed=_confirmed(data),
        )
        return jsonify({"line": line.to_dict(), "totals": session.totals().to_dict()}), 201

    except PosError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to add cart item")
        return jsonify({"error": "Internal server error"}), 500


@pos_bp.patch("/items/<int:index>")
@require_operator
def update_item_route(index: int):
    """Edit quantity, unit_price or discount of the line at ``index``."""
    try:
        data = request.get_json() or {}
        field_name = data.get("field")
        if not field_name or "value" not in data:
            return jsonify({"error": "field and value required"}), 400

        session = _current_session()
        line = session.update_item(index, field_name, data["value"], override_confirmed=_confirmed(data))
        return jsonify({"line": line.to_dict(), "totals": session.totals().to_dict()}), 200

    except PosError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to update cart item")
        return jsonify({"error": "Internal server error"}), 500


@pos_bp.delete("/items/<int:line_id>")
@require_operator
def remove_item_route(line_id: int):
    try:
        session = _current_session()
        removed = session.remove_item(line_id)
        return jsonify({"removed": removed, "totals": session.totals().to_dict()}), 200
    except PosError as e:
        return _error(e)


@pos_bp.post("/wholesale")
@require_operator
def set_wholesale_route():
    try:
        data = request.get_json() or {}
        session = _current_session()
        session.set_wholesale(bool(data.get("enabled", False)))
        return jsonify({"use_wholesale": session.use_wholesale}), 200
    except PosError as e:
        return _error(e)


@pos_bp.post("/future-order-mode")
@require_operator
def set_future_order_route():
    try:
        data = request.get_json() or {}
        session = _current_session()
        session.set_future_order(bool(data.get("enabled", False)))
        return jsonify({"future_order": session.future_order}), 200
    except PosError as e:
        return _error(e)


# =============================================================================
# CUSTOMER AND DISCOUNTS
# =============================================================================

@pos_bp.post("/customer")
@require_operator
def attach_customer_route():
    try:
        data = request.get_json() or {}
        customer_id = data.get("customer_id")
        if not customer_id:
            return jsonify({"error": "customer_id required"}), 400

        session = _current_session()
        customer = session.attach_customer(customer_id)
        return jsonify({"customer": customer.to_dict(), "totals": session.totals().to_dict()}), 200

    except PosError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to attach customer")
        return jsonify({"error": "Internal server error"}), 500


@pos_bp.delete("/customer")
@require_operator
def detach_customer_route():
    try:
        session = _current_session()
        session.detach_customer()
        return jsonify({"customer": None, "totals": session.totals().to_dict()}), 200
    except PosError as e:
        return _error(e)


@pos_bp.post("/discount")
@require_operator
def set_discount_route():
    """
    Apply a manual discount.

    Requests above the operator's cap are clamped; the response reports the
    accepted value and whether clamping happened.
    """
    try:
        data = request.get_json() or {}
        if "value" not in data:
            return jsonify({"error": "value required"}), 400

        session = _current_session()
        decision = session.set_manual_discount(data["value"], data.get("type", "percent"))
        return jsonify({"discount": decision.to_dict(), "totals": session.totals().to_dict()}), 200

    except PosError as e:
        return _error(e)


@pos_bp.post("/loyalty")
@require_operator
def redeem_points_route():
    try:
        data = request.get_json() or {}
        session = _current_session()
        points = session.redeem_points(data.get("points", 0))
        return jsonify({"points": points, "totals": session.totals().to_dict()}), 200
    except PosError as e:
        return _error(e)


@pos_bp.get("/totals")
@require_operator
def totals_route():
    try:
        return jsonify({"totals": _current_session().totals().to_dict()}), 200
    except PosError as e:
        return _error(e)


# =============================================================================
# PAYMENTS
# =============================================================================

@pos_bp.get("/payment-methods")
@require_operator
def list_payment_methods_route():
    methods = catalog_service.list_payment_methods(g.store_id)
    return jsonify({"payment_methods": [m.to_dict() for m in methods]}), 200


@pos_bp.post("/payments")
@require_operator
def add_payment_route():
    try:
        data = request.get_json() or {}
        if "amount" not in data:
            return jsonify({"error": "amount required"}), 400

        session = _current_session()
        payment = session.add_payment(
            data.get("method_id"),
            data["amount"],
            data.get("installments", 1),
        )
        total = session.totals().total
        return jsonify({"payment": payment.to_dict(), "summary": session.payments.summary(total)}), 201

    except PosError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to add payment")
        return jsonify({"error": "Internal server error"}), 500


@pos_bp.delete("/payments/<int:index>")
@require_operator
def remove_payment_route(index: int):
    try:
        session = _current_session()
        session.remove_payment(index)
        total = session.totals().total
        return jsonify({"summary": session.payments.summary(total)}), 200
    except PosError as e:
        return _error(e)


# =============================================================================
# TERMINAL PATHS
# =============================================================================

@pos_bp.post("/finalize")
@require_operator
def finalize_route():
    """
    Commit the sale in progress.

    201 with the persisted sale. ``stock_complete`` is False when some stock
    writes failed after the sale was committed (the sale still stands).
    409 when no sale number could be assigned; the cart is kept for a retry.
    """
    try:
        result = _current_session().finalize()
        return jsonify(result.to_dict()), 201

    except PosError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to finalize sale")
        return jsonify({"error": "Internal server error"}), 500


@pos_bp.post("/future-orders")
@require_operator
def create_future_order_route():
    try:
        data = request.get_json() or {}
        order = _current_session().create_future_order(
            data.get("expected_date"),
            notes=data.get("notes"),
            advance_payment=data.get("advance_payment"),
        )
        return jsonify({"future_order": order.to_dict()}), 201

    except PosError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to create future order")
        return jsonify({"error": "Internal server error"}), 500


@pos_bp.post("/cancel")
@require_operator
def cancel_route():
    try:
        data = request.get_json() or {}
        cancellation = _current_session().cancel(data.get("reason"), data.get("notes"))
        return jsonify({
            "cancelled": True,
            "cancellation": cancellation.to_dict() if cancellation else None,
        }), 200

    except PosError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to cancel sale")
        return jsonify({"error": "Internal server error"}), 500


@pos_bp.get("/cancellation-reasons")
def cancellation_reasons_route():
    reasons = [{"code": k, "label": v} for k, v in sales_service.CANCELLATION_REASONS.items()]
    return jsonify({"reasons": reasons}), 200


@pos_bp.get("/sales/<int:sale_id>")
@require_operator
def get_sale_route(sale_id: int):
    sale = db.session.get(Sale, sale_id)
    if not sale or sale.store_id != g.store_id:
        return jsonify({"error": "Sale not found"}), 404
    return jsonify({"sale": sale.to_dict()}), 200


# =============================================================================
# REGISTER SHIFTS
# =============================================================================

@pos_bp.post("/registers/<int:register_id>/open")
@require_operator
def open_shift_route(register_id: int):
    try:
        data = request.get_json() or {}
        session = register_service.open_shift(register_id, g.operator.id, data.get("opening_cash", 0))
        return jsonify({"register_session": session.to_dict()}), 201

    except PosError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to open register session")
        return jsonify({"error": "Internal server error"}), 500


@pos_bp.post("/register-sessions/<int:register_session_id>/close")
@require_operator
def close_shift_route(register_session_id: int):
    try:
        session = register_service.close_shift(register_session_id, store_id=g.store_id)
        return jsonify({"register_session": session.to_dict()}), 200

    except PosError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to close register session")
        return jsonify({"error": "Internal server error"}), 500
