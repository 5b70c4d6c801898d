from __future__ import annotations

from ..extensions import db
from pos_engine.money import money_str
from pos_engine.time_utils import to_utc_z


class Register(db.Model):
    """
    Physical POS register/terminal.

    Each register can have multiple sessions (shifts) over time, at most one OPEN.
    """
    __tablename__ = "registers"
    __table_args__ = (
        db.UniqueConstraint("store_id", "register_number", name="uq_registers_store_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    # Human-readable identifier (e.g., "REG-01", "FRONT")
    register_number = db.Column(db.String(32), nullable=False)
    name = db.Column(db.String(128), nullable=False)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    store = db.relationship("Store", backref=db.backref("registers", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "register_number": self.register_number,
            "name": self.name,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class RegisterSession(db.Model):
    """
    Cash register session (shift).

    LIFECYCLE:
    - OPEN: sales may be finalized against it
    - CLOSED: shift ended; no further sales
    """
    __tablename__ = "register_sessions"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    register_id = db.Column(db.Integer, db.ForeignKey("registers.id"), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    opened_by_operator_id = db.Column(db.Integer, db.ForeignKey("operators.id"), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default="OPEN", index=True)  # OPEN, CLOSED

    opening_cash = db.Column(db.Numeric(14, 4), nullable=False, default=0)

    opened_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    register = db.relationship("Register", backref=db.backref("sessions", lazy=True))
    opened_by = db.relationship("Operator", foreign_keys=[opened_by_operator_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "register_id": self.register_id,
            "store_id": self.store_id,
            "opened_by_operator_id": self.opened_by_operator_id,
            "status": self.status,
            "opening_cash": money_str(self.opening_cash),
            "opened_at": to_utc_z(self.opened_at),
            "closed_at": to_utc_z(self.closed_at) if self.closed_at else None,
        }
