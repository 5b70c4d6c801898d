# backend/pos_engine/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/pos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///pos.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Sale finalization: bounded retry on sale number conflicts
    POS_SALE_NUMBER_ATTEMPTS = int(os.environ.get("POS_SALE_NUMBER_ATTEMPTS", "3"))

    # Store-wide "block sale when out of stock" (products may also opt in individually)
    POS_BLOCK_SALE_NO_STOCK = _env_bool("POS_BLOCK_SALE_NO_STOCK", True)

    # Barcode scanner framing characters stripped before decoding
    POS_SCANNER_PREFIX = os.environ.get("POS_SCANNER_PREFIX", "")
    POS_SCANNER_SUFFIX = os.environ.get("POS_SCANNER_SUFFIX", "")

    # "shared" (any open register session of the store) or "per_operator"
    POS_CASH_REGISTER_MODE = os.environ.get("POS_CASH_REGISTER_MODE", "shared")

    # Smallest quantity a cart line may hold (weighed goods use grams)
    POS_MIN_QUANTITY = os.environ.get("POS_MIN_QUANTITY", "0.001")
