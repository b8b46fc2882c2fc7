"""Ports for persisting identifier state between runs."""

from __future__ import annotations

from threading import Lock
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping


@runtime_checkable
class IdentifierStore(Protocol):
    """Durable raw identifier values keyed by record and field name."""

    def load(self, record_key: str) -> dict[str, int]: ...

    def save(self, record_key: str, values: Mapping[str, int]) -> None: ...


class InMemoryIdentifierStore:
    """Process-local store.

    With ``seed`` set, records not yet saved here are read from that store,
    while writes never reach it. Dry runs use this to see persisted state
    without changing it.
    """

    def __init__(self, *, seed: IdentifierStore | None = None) -> None:
        self._seed = seed
        self._values: dict[str, dict[str, int]] = {}
        self._guard = Lock()

    def load(self, record_key: str) -> dict[str, int]:
        with self._guard:
            stored = self._values.get(record_key)
            if stored is not None:
                return dict(stored)
        if self._seed is None:
            return {}
        return self._seed.load(record_key)

    def save(self, record_key: str, values: Mapping[str, int]) -> None:
        with self._guard:
            self._values[record_key] = dict(values)


__all__ = ["IdentifierStore", "InMemoryIdentifierStore"]
