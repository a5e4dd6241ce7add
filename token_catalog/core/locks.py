"""Per-family critical sections.

Family recomputes are read-modify-write cycles, so two recomputes of the same
family must never interleave. Within one process this is a keyed
``threading.Lock``; on PostgreSQL a transaction-scoped advisory lock keyed by
the family id additionally serializes recomputes across worker processes.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Iterator, Optional

from sqlalchemy import text
from sqlalchemy.orm import Session

from token_catalog.core.config import settings
from token_catalog.core.db import dialect_name
from token_catalog.core.errors import TransientError


class _Entry:
    __slots__ = ("lock", "holders")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.holders = 0


class KeyedLockRegistry:
    """Hands out one mutex per key and forgets keys nobody is waiting on."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._entries: Dict[str, _Entry] = {}

    @contextmanager
    def hold(self, key: str, timeout: Optional[float] = None) -> Iterator[None]:
        timeout = settings.STORE_TIMEOUT_SECONDS if timeout is None else timeout

        with self._guard:
            entry = self._entries.setdefault(key, _Entry())
            entry.holders += 1

        acquired = entry.lock.acquire(timeout=timeout)
        try:
            if not acquired:
                raise TransientError(f"Timed out after {timeout}s waiting for lock on '{key}'")
            yield
        finally:
            if acquired:
                entry.lock.release()
            with self._guard:
                entry.holders -= 1
                if entry.holders == 0:
                    self._entries.pop(key, None)

    def active_keys(self) -> list[str]:
        with self._guard:
            return list(self._entries)


family_locks = KeyedLockRegistry()


def advisory_key(family_id: str) -> int:
    """Map a hex family id onto PostgreSQL's signed 64-bit advisory lock space."""
    value = int(family_id[:16], 16)
    return value - (1 << 64) if value >= (1 << 63) else value


def acquire_advisory_lock(db: Session, family_id: str) -> None:
    """Take a transaction-scoped advisory lock; released on commit or rollback."""
    if dialect_name(db) != "postgresql":
        return
    db.execute(text("SELECT pg_advisory_xact_lock(:key)"), {"key": advisory_key(family_id)})
