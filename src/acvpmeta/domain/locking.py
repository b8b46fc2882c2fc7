"""Per-record locks serialising identifier reads and writes.

Each configuration record gets one lock, created on first use. Holding it
while loading, reconciling and persisting a record's identifiers keeps
concurrent workflows that share the record from overwriting each other.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from acvpmeta.domain.errors import InvalidArgumentError

if TYPE_CHECKING:
    from collections.abc import Iterator

    from acvpmeta.domain.model import IdentifiedRecord
    from acvpmeta.domain.ports.persistence import IdentifierStore

log = getLogger(__name__)


@dataclass(eq=False, slots=True)
class EntityLock:
    mutex: threading.Lock = field(default_factory=threading.Lock)
    refcount: int = 0
    owner: int | None = None


class LockRegistry:
    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, EntityLock] = {}

    def lock_for(self, record: IdentifiedRecord) -> EntityLock:
        with self._guard:
            lock = self._locks.get(record.key)
            if lock is None:
                lock = EntityLock()
                self._locks[record.key] = lock
            return lock

    def acquire(self, record: IdentifiedRecord | None) -> EntityLock:
        if record is None:
            raise InvalidArgumentError("Cannot lock a missing record")
        lock = self.lock_for(record)
        if lock.owner == threading.get_ident():
            # threading.Lock is not reentrant; waiting here would never return
            raise InvalidArgumentError(f"Record {record.key} is already locked by this thread")
        lock.mutex.acquire()
        lock.owner = threading.get_ident()
        lock.refcount += 1
        return lock

    def release(self, record: IdentifiedRecord | None) -> None:
        if record is None:
            raise InvalidArgumentError("Cannot unlock a missing record")
        with self._guard:
            lock = self._locks.get(record.key)
        if lock is None or lock.refcount == 0:
            raise InvalidArgumentError(f"Record {record.key} is not locked")
        lock.refcount -= 1
        lock.owner = None
        lock.mutex.release()

    @contextmanager
    def hold[R: IdentifiedRecord](
        self, record: R, store: IdentifierStore | None = None
    ) -> Iterator[R]:
        """Lock ``record`` and sync its identifiers with ``store`` around the block.

        Identifiers are persisted on every exit, including errors, so that
        partial progress such as a fresh request id survives a failed run.
        """

        self.acquire(record)
        loaded = False
        try:
            if store is not None:
                record.load_raw(store.load(record.key))
                loaded = True
            yield record
        finally:
            try:
                if loaded and store is not None:
                    store.save(record.key, record.dump_raw())
            finally:
                self.release(record)

    def release_all(self) -> None:
        with self._guard:
            held = [key for key, lock in self._locks.items() if lock.refcount]
            if held:
                log.warning("Discarding locks still held for: %s", ", ".join(sorted(held)))
            self._locks.clear()

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


_REGISTRY = LockRegistry()


def default_registry() -> LockRegistry:
    return _REGISTRY


def release_all() -> None:
    _REGISTRY.release_all()
