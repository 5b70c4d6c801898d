# Overview: Retry helpers for cross-register concurrency (DB lock retries and sequence-number allocation).

from __future__ import annotations

import time
from typing import Callable, TypeVar

from sqlalchemy.exc import OperationalError

from ..extensions import db

T = TypeVar("T")


class SequenceConflict(Exception):
    """The proposed sequence number is already taken (unique violation)."""

    def __init__(self, number: int):
        super().__init__(f"Sequence number {number} already taken")
        self.number = number


class SequenceExhausted(Exception):
    """Every attempt collided; nothing was inserted by this call."""

    def __init__(self, attempts: int, proposed: list[int]):
        super().__init__(f"Could not allocate a sequence number after {attempts} attempt(s)")
        self.attempts = attempts
        self.proposed = proposed


def run_with_retry(func: Callable[[], T], *, attempts: int = 3, backoff_base: float = 0.1) -> T:
    """
    Execute a DB operation with retry on lock/deadlock failures.

    The session is rolled back before each retry, so ``func`` must redo its
    reads and writes from scratch.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except OperationalError as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc


def allocate_with_retry(
    read_max: Callable[[], int],
    try_insert: Callable[[int], T],
    *,
    attempts: int = 3,
    on_conflict: Callable[[int, int], None] | None = None,
) -> T:
    """
    Optimistic sequence allocation: read max, propose max + 1 + attempt, insert.

    ``try_insert`` raises SequenceConflict when the number is taken; the
    maximum is re-read before every attempt. Guarantees uniqueness, not a
    gap-free sequence.
    """
    if attempts < 1:
        raise ValueError("attempts must be >= 1")

    proposed: list[int] = []
    for attempt in range(attempts):
        number = read_max() + 1 + attempt
        proposed.append(number)
        try:
            return try_insert(number)
        except SequenceConflict:
            if on_conflict is not None:
                on_conflict(attempt, number)
    raise SequenceExhausted(attempts, proposed)
