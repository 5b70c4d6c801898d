"""
Register and Shift Management Service

DESIGN PRINCIPLES:
- One OPEN session per register at a time
- Sessions are immutable once closed
- Sales require an OPEN session; in "shared" mode any open session of the
  store serves every operator, in "per_operator" mode only the one the
  operator opened
"""

from ..extensions import db
from ..models import Operator, Register, RegisterSession
from pos_engine.time_utils import utcnow
from ..validation import NotFoundError, ValidationError, parse_money
from .settings_service import REGISTER_MODE_PER_OPERATOR


class RegisterError(ValidationError):
    """Raised for register operation errors."""


class ShiftError(ValidationError):
    """Raised for shift management errors."""


# =============================================================================
# REGISTER MANAGEMENT
# =============================================================================

def create_register(store_id: int, register_number: str, name: str) -> Register:
    existing = db.session.query(Register).filter_by(
        store_id=store_id,
        register_number=register_number,
    ).first()

    if existing:
        raise RegisterError(f"Register '{register_number}' already exists in this store")

    register = Register(
        store_id=store_id,
        register_number=register_number,
        name=name,
        is_active=True,
    )

    db.session.add(register)
    db.session.commit()

    return register


# =============================================================================
# SHIFT MANAGEMENT
# =============================================================================

def open_shift(register_id: int, operator_id: int, opening_cash=0) -> RegisterSession:
    """
    Open a register session.

    Raises:
        ShiftError: register inactive or already has an open session
    """
    register = db.session.get(Register, register_id)
    if not register:
        raise NotFoundError("Register not found")
    if not register.is_active:
        raise ShiftError("Cannot open shift on inactive register")

    operator = db.session.get(Operator, operator_id)
    if not operator or operator.store_id != register.store_id:
        raise NotFoundError("Operator not found")

    existing = db.session.query(RegisterSession).filter_by(
        register_id=register_id,
        status="OPEN",
    ).first()
    if existing:
        raise ShiftError(
            "Register already has an open session",
            details={"register_session_id": existing.id},
        )

    session = RegisterSession(
        register_id=register_id,
        store_id=register.store_id,
        opened_by_operator_id=operator_id,
        status="OPEN",
        opening_cash=parse_money("opening_cash", opening_cash),
        opened_at=utcnow(),
    )
    db.session.add(session)
    db.session.commit()
    return session


def close_shift(register_session_id: int, store_id: int | None = None) -> RegisterSession:
    session = db.session.get(RegisterSession, register_session_id)
    if not session or (store_id is not None and session.store_id != store_id):
        raise NotFoundError("Register session not found")
    if session.status != "OPEN":
        raise ShiftError("Register session is already closed")

    session.status = "CLOSED"
    session.closed_at = utcnow()
    db.session.commit()
    return session


def find_open_session(store_id: int, operator_id: int, mode: str) -> RegisterSession | None:
    query = db.session.query(RegisterSession).filter_by(store_id=store_id, status="OPEN")
    if mode == REGISTER_MODE_PER_OPERATOR:
        query = query.filter_by(opened_by_operator_id=operator_id)
    return query.order_by(RegisterSession.opened_at.asc(), RegisterSession.id.asc()).first()


def is_session_open(register_session_id: int | None) -> bool:
    if register_session_id is None:
        return False
    status = (
        db.session.query(RegisterSession.status)
        .filter_by(id=register_session_id)
        .scalar()
    )
    return status == "OPEN"
