"""Per-OE workflow: dependencies first, then the environment record."""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from acvpmeta.domain.errors import PendingError
from acvpmeta.domain.identifiers import Pending
from acvpmeta.domain.types import EntityKind

from .dependencies import PROCESSOR, SOFTWARE
from .environment import OE, software_consistent

if TYPE_CHECKING:
    from acvpmeta.domain.locking import LockRegistry
    from acvpmeta.domain.model import OperationalEnvironment
    from acvpmeta.domain.ports.persistence import IdentifierStore

    from .contracts import Outcome
    from .engine import ReconciliationEngine
    from .pending import PendingRequestResolver

log = getLogger(__name__)


@dataclass(slots=True)
class WorkflowReport:
    record_key: str
    outcomes: dict[EntityKind, Outcome] = field(default_factory=dict)


class OperationalEnvironmentWorkflow:
    def __init__(
        self,
        *,
        engine: ReconciliationEngine,
        resolver: PendingRequestResolver,
        locks: LockRegistry,
        store: IdentifierStore,
    ) -> None:
        self.engine = engine
        self.resolver = resolver
        self.locks = locks
        self.store = store

    def run(self, oe: OperationalEnvironment) -> WorkflowReport:
        """Reconcile processor, software and OE records of ``oe``.

        Identifiers are loaded when the record's lock is taken and written
        back when it is released, whatever happens in between.
        """

        report = WorkflowReport(oe.key)
        with self.locks.hold(oe, self.store):
            self.resolver.resolve_record(oe)
            software_consistent(oe)

            for strategy in (PROCESSOR, SOFTWARE):
                report.outcomes[strategy.kind] = self.engine.reconcile(strategy, oe)

            waiting = [
                str(strategy.kind)
                for strategy in (PROCESSOR, SOFTWARE)
                if isinstance(oe.identifier(strategy.id_field), Pending)
            ]
            if waiting:
                names = ", ".join(waiting)
                log.info("OE %s waits for approval of its %s dependency", oe.key, names)
                raise PendingError(
                    f"{oe.key}: OE step deferred until {names} registration is approved",
                    waiting=waiting,
                )

            report.outcomes[EntityKind.OE] = self.engine.reconcile(OE, oe)
        return report
