"""Reconciliation behaviour switches."""

from __future__ import annotations

from dataclasses import dataclass, field

from acvpmeta.domain.types import EntityKind

DEFAULT_WORKERS = 4


@dataclass(frozen=True, slots=True)
class ReconcileOptions:
    """Operator switches for one reconciliation run.

    ``dry_run`` only logs the payloads that would be submitted. ``auto_register``
    submits new registrations without asking. ``delete`` / ``update`` force the
    corresponding request for the listed kinds even if the remote record matches.
    ``show_only`` searches and reports but never registers.
    """

    dry_run: bool = False
    auto_register: bool = False
    show_only: bool = False
    delete: frozenset[EntityKind] = field(default_factory=frozenset)
    update: frozenset[EntityKind] = field(default_factory=frozenset)
    workers: int = DEFAULT_WORKERS

    def __post_init__(self) -> None:
        if self.workers < 1:
            raise ValueError("workers must be at least 1")

    def wants_delete(self, kind: EntityKind) -> bool:
        return kind in self.delete

    def wants_update(self, kind: EntityKind) -> bool:
        return kind in self.update
