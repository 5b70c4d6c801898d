from decimal import Decimal

import pytest

from pos_engine.permissions import UnknownRoleError, build_operator_permissions, permissions_for_role
from pos_engine.services import settings_service
from pos_engine.services.settings_service import SettingsError


def test_defaults_come_from_app_config(app, db_session, store):
    settings = settings_service.load_pos_settings(store.id)

    assert settings.block_sale_no_stock is True
    assert settings.scanner_prefix == ""
    assert settings.cash_register_mode == "shared"
    assert settings.sale_number_attempts == app.config["POS_SALE_NUMBER_ATTEMPTS"]
    assert settings.min_quantity == Decimal("0.001")


def test_store_setting_overrides_config(db_session, store, other_store):
    settings_service.set_store_setting(store.id, "pos.block_sale_no_stock", "false")
    settings_service.set_store_setting(store.id, "pos.scanner_suffix", "#")

    settings = settings_service.load_pos_settings(store.id)
    assert settings.block_sale_no_stock is False
    assert settings.scanner_suffix == "#"

    # other stores keep the config defaults
    assert settings_service.load_pos_settings(other_store.id).block_sale_no_stock is True


def test_set_setting_updates_existing_row(db_session, store):
    settings_service.set_store_setting(store.id, "pos.scanner_prefix", "A")
    row = settings_service.set_store_setting(store.id, "pos.scanner_prefix", "B")

    assert row.value == "B"
    assert settings_service.load_pos_settings(store.id).scanner_prefix == "B"


def test_unknown_setting_key_rejected(db_session, store):
    with pytest.raises(SettingsError):
        settings_service.set_store_setting(store.id, "pos.colour", "blue")


@pytest.mark.parametrize("key,value", [
    ("pos.cash_register_mode", "sometimes"),
    ("pos.block_sale_no_stock", "maybe"),
    ("pos.sale_number_attempts", "0"),
    ("pos.min_quantity", "-1"),
])
def test_invalid_setting_values_rejected_on_load(db_session, store, key, value):
    settings_service.set_store_setting(store.id, key, value)
    with pytest.raises(SettingsError):
        settings_service.load_pos_settings(store.id)


@pytest.mark.parametrize("role,discount,cap,stock_override,price", [
    ("owner", True, "100", True, True),
    ("admin", True, "100", True, True),
    ("manager", True, "50", True, True),
    ("seller", True, "10", False, False),
    ("cashier", False, "5", False, False),
    ("stockist", False, "0", False, False),
])
def test_role_defaults(role, discount, cap, stock_override, price):
    perms = permissions_for_role(role)
    assert perms.can_give_discount is discount
    assert perms.max_discount_percent == Decimal(cap)
    assert perms.can_override_stock is stock_override
    assert perms.can_change_price is price


def test_operator_overrides_take_precedence(db_session, make_operator):
    operator = make_operator("cashier", can_give_discount=True, max_discount_percent=Decimal("150"))
    perms = build_operator_permissions(operator)

    assert perms.can_give_discount is True
    assert perms.max_discount_percent == Decimal("100")
    assert perms.can_override_stock is False


def test_unknown_role_rejected():
    with pytest.raises(UnknownRoleError):
        permissions_for_role("intern")
