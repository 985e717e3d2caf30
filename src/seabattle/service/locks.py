"""Per-match mutual exclusion for the orchestrator and the sweeper."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator
from uuid import UUID


@dataclass
class _MatchLock:
    lock: threading.RLock = field(default_factory=threading.RLock)
    holders: int = 0


class MatchLockRegistry:
    """Hands out one lock per match id while anyone is using it.

    An entry is dropped as soon as its last holder (or waiter) leaves, so the
    registry only ever holds the matches currently being worked on.
    """

    def __init__(self) -> None:
        self._locks: dict[UUID, _MatchLock] = {}
        self._guard = threading.Lock()  # protects _locks and holder counts

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, match_id: UUID) -> Iterator[None]:
        """Serialize every read-modify-write of one match."""
        with self._guard:
            entry = self._locks.get(match_id)
            if entry is None:
                entry = self._locks[match_id] = _MatchLock()
            entry.holders += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._guard:
                entry.holders -= 1
                if entry.holders == 0:
                    del self._locks[match_id]
