"""Application orchestration entry points."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING

from acvpmeta.adapters.acvp import AcvpClient
from acvpmeta.adapters.definitions import load_definitions
from acvpmeta.adapters.sqlalchemy import startup
from acvpmeta.config import ReconcileOptions, get_database_config, get_server_config
from acvpmeta.config.reconcile import DEFAULT_WORKERS
from acvpmeta.domain.errors import PendingError, ReconciliationError
from acvpmeta.domain.locking import default_registry
from acvpmeta.domain.ports.persistence import InMemoryIdentifierStore
from acvpmeta.domain.reconciliation import (
    AutoApprovePolicy,
    OperationalEnvironmentWorkflow,
    PendingRequestResolver,
    ReconciliationEngine,
)

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from acvpmeta.domain.locking import LockRegistry
    from acvpmeta.domain.model import Definition, OperationalEnvironment
    from acvpmeta.domain.ports.decisions import DecisionPolicy
    from acvpmeta.domain.ports.persistence import IdentifierStore
    from acvpmeta.domain.ports.remote import RemoteRegistry
    from acvpmeta.domain.reconciliation import WorkflowReport
    from acvpmeta.domain.registry import SearchCriteria

log = getLogger(__name__)


class RecordStatus(StrEnum):
    DONE = "done"
    PENDING = "pending"
    FAILED = "failed"


@dataclass(slots=True)
class RecordResult:
    record_key: str
    status: RecordStatus
    report: WorkflowReport | None = None
    error: str | None = None


@dataclass(slots=True)
class SyncResult:
    records: list[RecordResult] = field(default_factory=list)

    def count(self, status: RecordStatus) -> int:
        return sum(1 for record in self.records if record.status is status)

    @property
    def failed(self) -> bool:
        return self.count(RecordStatus.FAILED) > 0


def _default_store(*, dry_run: bool) -> IdentifierStore:
    store = startup(database_uri=get_database_config().uri)
    if dry_run:
        return InMemoryIdentifierStore(seed=store)
    return store


def _run_all(
    oes: list[OperationalEnvironment],
    task: Callable[[OperationalEnvironment], WorkflowReport | None],
    *,
    workers: int,
) -> SyncResult:
    def run_one(oe: OperationalEnvironment) -> RecordResult:
        try:
            report = task(oe)
        except PendingError as exc:
            log.info("%s", exc)
            return RecordResult(oe.key, RecordStatus.PENDING, error=str(exc))
        except ReconciliationError as exc:
            log.error("Reconciliation of %s failed: %s", oe.key, exc)
            return RecordResult(oe.key, RecordStatus.FAILED, error=str(exc))
        return RecordResult(oe.key, RecordStatus.DONE, report=report)

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="oe") as pool:
        results = list(pool.map(run_one, oes))
    return SyncResult(results)


def reconcile_operational_environments(
    definitions_path: Path,
    *,
    options: ReconcileOptions | None = None,
    policy: DecisionPolicy | None = None,
    remote: RemoteRegistry | None = None,
    store: IdentifierStore | None = None,
    locks: LockRegistry | None = None,
) -> SyncResult:
    """Reconcile every OE named by the definitions file with the server."""

    effective_options = options or ReconcileOptions()
    registry = load_definitions(definitions_path)
    oes = registry.operational_environments()
    effective_remote = remote or AcvpClient(config=get_server_config())
    effective_store = store or _default_store(dry_run=effective_options.dry_run)
    workflow = OperationalEnvironmentWorkflow(
        engine=ReconciliationEngine(
            remote=effective_remote,
            policy=policy or AutoApprovePolicy(),
            options=effective_options,
        ),
        resolver=PendingRequestResolver(effective_remote),
        locks=locks or default_registry(),
        store=effective_store,
    )
    log.info(
        "Starting reconciliation: oes=%s, workers=%s, dry_run=%s, show_only=%s",
        len(oes),
        effective_options.workers,
        effective_options.dry_run,
        effective_options.show_only,
    )

    result = _run_all(oes, workflow.run, workers=effective_options.workers)

    log.info(
        "Finished reconciliation: done=%s, pending=%s, failed=%s",
        result.count(RecordStatus.DONE),
        result.count(RecordStatus.PENDING),
        result.count(RecordStatus.FAILED),
    )
    return result


def resolve_pending_requests(
    definitions_path: Path,
    *,
    remote: RemoteRegistry | None = None,
    store: IdentifierStore | None = None,
    locks: LockRegistry | None = None,
    workers: int = DEFAULT_WORKERS,
) -> SyncResult:
    """Poll outstanding registration requests without reconciling anything else."""

    registry = load_definitions(definitions_path)
    effective_remote = remote or AcvpClient(config=get_server_config())
    resolver = PendingRequestResolver(effective_remote)
    effective_locks = locks or default_registry()
    effective_store = store or _default_store(dry_run=False)

    def resolve(oe: OperationalEnvironment) -> None:
        with effective_locks.hold(oe, effective_store):
            resolver.resolve_record(oe)

    result = _run_all(registry.operational_environments(), resolve, workers=workers)
    log.info(
        "Finished request lookup: resolved=%s, pending=%s, failed=%s",
        result.count(RecordStatus.DONE),
        result.count(RecordStatus.PENDING),
        result.count(RecordStatus.FAILED),
    )
    return result


def list_definitions(
    definitions_path: Path,
    criteria: SearchCriteria,
    *,
    store: IdentifierStore | None = None,
) -> list[Definition]:
    """Definitions matching ``criteria`` with their OE identifiers loaded from the store."""

    registry = load_definitions(definitions_path)
    effective_store = store or _default_store(dry_run=True)
    for oe in registry.operational_environments():
        oe.load_raw(effective_store.load(oe.key))
    return list(registry.iter_matches(criteria))
