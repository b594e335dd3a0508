"""Per-key mutual exclusion whose bookkeeping shrinks back when keys go idle."""

from __future__ import annotations

from collections.abc import Hashable
from dataclasses import dataclass, field
from threading import Lock


@dataclass(slots=True)
class _Entry:
    lock: Lock = field(default_factory=Lock)
    users: int = 0


class KeyedLocks:
    """One lock per key; an entry is dropped once nobody holds or waits for it.

    ``release`` may be called from a thread other than the one that acquired,
    so a lock can be handed off to the completion callback of a pending call.
    """

    def __init__(self) -> None:
        self._guard = Lock()
        self._entries: dict[Hashable, _Entry] = {}

    def acquire(self, key: Hashable, timeout: float | None = None) -> bool:
        with self._guard:
            entry = self._entries.setdefault(key, _Entry())
            entry.users += 1
        if entry.lock.acquire(timeout=-1 if timeout is None else timeout):
            return True
        with self._guard:
            self._leave(key, entry)
        return False

    def release(self, key: Hashable) -> None:
        with self._guard:
            entry = self._entries[key]
            entry.lock.release()
            self._leave(key, entry)

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)

    def _leave(self, key: Hashable, entry: _Entry) -> None:
        entry.users -= 1
        if entry.users == 0 and self._entries.get(key) is entry:
            del self._entries[key]
