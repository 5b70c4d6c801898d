from decimal import Decimal

import pytest

from pos_engine.services import register_service
from pos_engine.services.register_service import RegisterError, ShiftError
from pos_engine.validation import NotFoundError


def test_open_and_close_shift(db_session, store, cashier):
    register = register_service.create_register(store.id, "REG-01", "Front")
    session = register_service.open_shift(register.id, cashier.id, "150.00")

    assert session.status == "OPEN"
    assert session.opening_cash == Decimal("150.00")
    assert register_service.is_session_open(session.id)
    assert register_service.find_open_session(store.id, cashier.id, "shared").id == session.id

    register_service.close_shift(session.id)
    assert not register_service.is_session_open(session.id)
    assert register_service.find_open_session(store.id, cashier.id, "shared") is None


def test_register_number_unique_per_store(db_session, store):
    register_service.create_register(store.id, "REG-01", "Front")
    with pytest.raises(RegisterError):
        register_service.create_register(store.id, "REG-01", "Back")


def test_one_open_session_per_register(db_session, store, cashier, seller):
    register = register_service.create_register(store.id, "REG-01", "Front")
    register_service.open_shift(register.id, cashier.id)

    with pytest.raises(ShiftError):
        register_service.open_shift(register.id, seller.id)


def test_close_twice_rejected(db_session, store, cashier):
    register = register_service.create_register(store.id, "REG-01", "Front")
    session = register_service.open_shift(register.id, cashier.id)
    register_service.close_shift(session.id)

    with pytest.raises(ShiftError):
        register_service.close_shift(session.id)


def test_close_scoped_to_store(db_session, store, other_store, cashier):
    register = register_service.create_register(store.id, "REG-01", "Front")
    session = register_service.open_shift(register.id, cashier.id)

    with pytest.raises(NotFoundError):
        register_service.close_shift(session.id, store_id=other_store.id)


def test_unknown_session_is_not_open(db_session):
    assert register_service.is_session_open(None) is False
    assert register_service.is_session_open(12345) is False
