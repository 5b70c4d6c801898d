# Overview: Immutable POS settings snapshot built from app config and store overrides.

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from flask import current_app

from ..extensions import db
from ..models import StoreSetting
from ..validation import ValidationError, parse_positive_int, parse_quantity


REGISTER_MODE_SHARED = "shared"
REGISTER_MODE_PER_OPERATOR = "per_operator"
VALID_REGISTER_MODES = {REGISTER_MODE_SHARED, REGISTER_MODE_PER_OPERATOR}

# StoreSetting key -> Config key
SETTING_KEYS = {
    "pos.block_sale_no_stock": "POS_BLOCK_SALE_NO_STOCK",
    "pos.scanner_prefix": "POS_SCANNER_PREFIX",
    "pos.scanner_suffix": "POS_SCANNER_SUFFIX",
    "pos.cash_register_mode": "POS_CASH_REGISTER_MODE",
    "pos.sale_number_attempts": "POS_SALE_NUMBER_ATTEMPTS",
    "pos.min_quantity": "POS_MIN_QUANTITY",
}


class SettingsError(ValidationError):
    pass


@dataclass(frozen=True)
class PosSettings:
    block_sale_no_stock: bool
    scanner_prefix: str
    scanner_suffix: str
    cash_register_mode: str
    sale_number_attempts: int
    min_quantity: Decimal

    def to_dict(self) -> dict:
        return {
            "block_sale_no_stock": self.block_sale_no_stock,
            "scanner_prefix": self.scanner_prefix,
            "scanner_suffix": self.scanner_suffix,
            "cash_register_mode": self.cash_register_mode,
            "sale_number_attempts": self.sale_number_attempts,
            "min_quantity": str(self.min_quantity),
        }


def _as_bool(key: str, value) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in {"1", "true", "yes", "on"}:
        return True
    if text in {"0", "false", "no", "off", ""}:
        return False
    raise SettingsError(f"{key} must be a boolean", details={"value": value})


def _store_overrides(store_id: int | None) -> dict[str, str | None]:
    if store_id is None:
        return {}
    rows = db.session.query(StoreSetting).filter(
        StoreSetting.store_id == store_id,
        StoreSetting.key.in_(list(SETTING_KEYS)),
    ).all()
    return {row.key: row.value for row in rows}


def load_pos_settings(store_id: int | None = None) -> PosSettings:
    """
    Build the settings snapshot for one POS session.

    Precedence: store setting row, then application config.
    """
    raw = {key: current_app.config.get(config_key) for key, config_key in SETTING_KEYS.items()}
    raw.update({k: v for k, v in _store_overrides(store_id).items() if v is not None})

    mode = str(raw["pos.cash_register_mode"] or REGISTER_MODE_SHARED).strip()
    if mode not in VALID_REGISTER_MODES:
        raise SettingsError(
            f"pos.cash_register_mode must be one of {sorted(VALID_REGISTER_MODES)}",
            details={"value": mode},
        )

    try:
        attempts = parse_positive_int("pos.sale_number_attempts", raw["pos.sale_number_attempts"])
        min_quantity = parse_quantity("pos.min_quantity", raw["pos.min_quantity"])
    except ValidationError as exc:
        raise SettingsError(str(exc), details=exc.details)

    return PosSettings(
        block_sale_no_stock=_as_bool("pos.block_sale_no_stock", raw["pos.block_sale_no_stock"]),
        scanner_prefix=str(raw["pos.scanner_prefix"] or ""),
        scanner_suffix=str(raw["pos.scanner_suffix"] or ""),
        cash_register_mode=mode,
        sale_number_attempts=attempts,
        min_quantity=min_quantity,
    )


def set_store_setting(store_id: int, key: str, value: str | None) -> StoreSetting:
    if key not in SETTING_KEYS:
        raise SettingsError(f"Unknown setting: {key}")
    row = db.session.query(StoreSetting).filter_by(store_id=store_id, key=key).first()
    if row is None:
        row = StoreSetting(store_id=store_id, key=key)
        db.session.add(row)
    row.value = value
    db.session.commit()
    return row
