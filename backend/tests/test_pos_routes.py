"""
HTTP tests for the POS blueprint: operator resolution, error mapping and a
full checkout over the API.
"""

from decimal import Decimal

import pytest

from pos_engine.models import Product, Sale


def _headers(operator):
    return {"X-Operator-Id": str(operator.id)}


@pytest.fixture
def started(client, seller, products, payment_methods, register_session):
    response = client.post("/api/pos/session", headers=_headers(seller))
    assert response.status_code == 201
    return seller


def test_health(client, db_session):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.get_json()["checks"]["database"]["status"] == "healthy"


def test_operator_header_required(client, db_session):
    response = client.post("/api/pos/session")
    assert response.status_code == 401

    response = client.post("/api/pos/session", headers={"X-Operator-Id": "999"})
    assert response.status_code == 401


def test_inactive_operator_forbidden(client, make_operator):
    operator = make_operator("seller", is_active=False)
    response = client.post("/api/pos/session", headers=_headers(operator))
    assert response.status_code == 403


def test_calls_without_session_return_404(client, seller):
    response = client.get("/api/pos/totals", headers=_headers(seller))
    assert response.status_code == 404


def test_full_checkout(client, started, products, payment_methods, db_session):
    headers = _headers(started)

    response = client.post("/api/pos/scan", json={"code": "7891000100103"}, headers=headers)
    assert response.status_code == 201
    assert response.get_json()["totals"]["total"] == "10.00"

    response = client.post("/api/pos/items", json={"product_id": products["coffee"].id, "quantity": 1},
                           headers=headers)
    assert response.status_code == 201
    assert response.get_json()["line"]["quantity"] == "2"

    response = client.post("/api/pos/payments",
                           json={"method_id": payment_methods["credit"].id, "amount": "25.00", "installments": 2},
                           headers=headers)
    assert response.status_code == 201
    summary = response.get_json()["summary"]
    assert summary["change"] == "5.00"
    assert summary["total_fees"] == "0.75"

    response = client.post("/api/pos/finalize", headers=headers)
    assert response.status_code == 201
    body = response.get_json()
    assert body["stock_complete"] is True
    assert body["sale"]["sale_number"] == 1
    assert body["sale"]["total"] == "20.00"
    assert body["sale"]["payments"][0]["installments"] == 2

    assert db_session.query(Sale).count() == 1
    assert db_session.get(Product, products["coffee"].id).stock_quantity == Decimal("8")

    response = client.get(f"/api/pos/sales/{body['sale']['id']}", headers=headers)
    assert response.status_code == 200


def test_unknown_scan_is_404(client, started):
    response = client.post("/api/pos/scan", json={"code": "nope"}, headers=_headers(started))
    assert response.status_code == 404
    assert response.get_json()["details"]["code"] == "nope"


def test_stock_block_is_400(client, started):
    response = client.post("/api/pos/scan", json={"code": "7891000200209"}, headers=_headers(started))
    assert response.status_code == 201
    response = client.post("/api/pos/scan", json={"code": "7891000200209"}, headers=_headers(started))
    assert response.status_code == 201

    response = client.post("/api/pos/scan", json={"code": "7891000200209"}, headers=_headers(started))
    assert response.status_code == 400
    assert response.get_json()["details"]["available"] == "2.000"


def test_stock_confirmation_round_trip(client, manager, products, register_session):
    headers = _headers(manager)
    client.post("/api/pos/session", headers=headers)

    response = client.post("/api/pos/items", json={"product_id": products["sugar"].id, "quantity": 3},
                           headers=headers)
    assert response.status_code == 409

    response = client.post("/api/pos/items",
                           json={"product_id": products["sugar"].id, "quantity": 3, "confirm": True},
                           headers=headers)
    assert response.status_code == 201
    assert response.get_json()["line"]["sold_without_stock"] is True


def test_open_price_requires_price(client, started, products):
    headers = _headers(started)
    response = client.post("/api/pos/scan", json={"code": "9002"}, headers=headers)
    assert response.status_code == 409

    response = client.post("/api/pos/scan", json={"code": "9002", "price": "12.50"}, headers=headers)
    assert response.status_code == 201


def test_discount_clamped_response(client, started, products):
    headers = _headers(started)
    client.post("/api/pos/items", json={"product_id": products["coffee"].id, "quantity": 10}, headers=headers)

    response = client.post("/api/pos/discount", json={"value": "20", "type": "percent"}, headers=headers)
    assert response.status_code == 200
    body = response.get_json()
    assert body["discount"]["clamped"] is True
    assert body["totals"]["manual_discount"] == "10.00"


def test_discount_denied_for_cashier(client, cashier, products, register_session):
    headers = _headers(cashier)
    client.post("/api/pos/session", headers=headers)
    client.post("/api/pos/items", json={"product_id": products["coffee"].id}, headers=headers)

    response = client.post("/api/pos/discount", json={"value": "1"}, headers=headers)
    assert response.status_code == 403


def test_finalize_insufficient_payment_is_400(client, started, products):
    headers = _headers(started)
    client.post("/api/pos/items", json={"product_id": products["coffee"].id}, headers=headers)

    response = client.post("/api/pos/finalize", headers=headers)
    assert response.status_code == 400
    assert response.get_json()["error"] == "Insufficient payment"


def test_cancel_and_reasons(client, started, products):
    headers = _headers(started)
    client.post("/api/pos/items", json={"product_id": products["coffee"].id}, headers=headers)

    reasons = client.get("/api/pos/cancellation-reasons").get_json()["reasons"]
    assert "wrong_product" in [r["code"] for r in reasons]

    response = client.post("/api/pos/cancel", json={"reason": "wrong_product"}, headers=headers)
    assert response.status_code == 200
    assert response.get_json()["cancellation"]["reason"] == "wrong_product"

    totals = client.get("/api/pos/totals", headers=headers).get_json()["totals"]
    assert totals["total"] == "0.00"


def test_sessions_are_per_operator(client, started, manager, products, register_session):
    client.post("/api/pos/items", json={"product_id": products["coffee"].id}, headers=_headers(started))

    client.post("/api/pos/session", headers=_headers(manager))
    session = client.get("/api/pos/session", headers=_headers(manager)).get_json()["session"]
    assert session["items"] == []
    assert session["permissions"]["can_override_stock"] is True
