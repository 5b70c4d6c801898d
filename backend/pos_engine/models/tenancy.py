from __future__ import annotations

from ..extensions import db
from pos_engine.time_utils import to_utc_z


class Store(db.Model):
    """
    Store (tenant).

    Sale and future-order numbers are sequences scoped to a store; products,
    customers, operators and registers all belong to exactly one store.
    """
    __tablename__ = "stores"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    code = db.Column(db.String(32), nullable=True, unique=True, index=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Store id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class StoreSetting(db.Model):
    """
    Key-value deployment settings at the store level.

    Overlaid on the application config when a POS session loads its
    settings snapshot (scanner prefix/suffix, stock blocking, register mode).
    """
    __tablename__ = "store_settings"
    __table_args__ = (
        db.UniqueConstraint("store_id", "key", name="uq_store_settings_key"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    key = db.Column(db.String(128), nullable=False)
    value = db.Column(db.Text, nullable=True)

    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self):
        return {
            "id": self.id,
            "store_id": self.store_id,
            "key": self.key,
            "value": self.value,
            "updated_at": to_utc_z(self.updated_at),
        }
