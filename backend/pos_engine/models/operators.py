from __future__ import annotations

from ..extensions import db
from pos_engine.time_utils import to_utc_z


class Operator(db.Model):
    """
    Person operating a register.

    The role selects default capabilities; the nullable override columns,
    when set, take precedence for this operator only.
    """
    __tablename__ = "operators"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(32), nullable=False, default="cashier")

    can_give_discount = db.Column(db.Boolean, nullable=True)
    max_discount_percent = db.Column(db.Numeric(5, 2), nullable=True)
    can_change_price = db.Column(db.Boolean, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    store = db.relationship("Store", backref=db.backref("operators", lazy=True))

    def __repr__(self) -> str:
        return f"<Operator id={self.id} name={self.name!r} role={self.role!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "name": self.name,
            "role": self.role,
            "can_give_discount": self.can_give_discount,
            "max_discount_percent": (
                str(self.max_discount_percent) if self.max_discount_percent is not None else None
            ),
            "can_change_price": self.can_change_price,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
