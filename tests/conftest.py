from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from acvpmeta.config import ReconcileOptions
from acvpmeta.domain.locking import LockRegistry
from acvpmeta.domain.ports.persistence import InMemoryIdentifierStore
from acvpmeta.domain.reconciliation import (
    OperationalEnvironmentWorkflow,
    PendingRequestResolver,
    ReconciliationEngine,
)
from tests.helpers.reconciliation import FakeRemote, ScriptedPolicy, make_oe

if TYPE_CHECKING:
    from collections.abc import Callable

    from acvpmeta.domain.model import OperationalEnvironment
    from acvpmeta.domain.ports.decisions import Decision


@pytest.fixture(autouse=True)
def _isolated_environment(
    monkeypatch: pytest.MonkeyPatch, tmp_path_factory: pytest.TempPathFactory
) -> None:
    for name in (
        "ACVP_SERVER_URL",
        "ACVP_ACCESS_TOKEN",
        "ACVP_PROTOCOL_VERSION",
        "ACVP_HTTP_CACHE",
        "ACVP_HTTP_CACHE_TTL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("ACVPMETA_DATA_DIR", str(tmp_path_factory.mktemp("data")))
    monkeypatch.setenv("ACVPMETA_DATABASE_URI", "sqlite+pysqlite:///:memory:")


@pytest.fixture
def remote() -> FakeRemote:
    return FakeRemote()


@pytest.fixture
def oe() -> OperationalEnvironment:
    return make_oe()


@pytest.fixture
def store() -> InMemoryIdentifierStore:
    return InMemoryIdentifierStore()


@pytest.fixture
def locks() -> LockRegistry:
    return LockRegistry()


@pytest.fixture
def make_engine(remote: FakeRemote) -> Callable[..., ReconciliationEngine]:
    def factory(
        *answers: Decision,
        policy: ScriptedPolicy | None = None,
        **options: object,
    ) -> ReconciliationEngine:
        return ReconciliationEngine(
            remote=remote,
            policy=policy or ScriptedPolicy(*answers),
            options=ReconcileOptions(**options),  # type: ignore[arg-type]
        )

    return factory


@pytest.fixture
def make_workflow(
    remote: FakeRemote,
    store: InMemoryIdentifierStore,
    locks: LockRegistry,
    make_engine: Callable[..., ReconciliationEngine],
) -> Callable[..., OperationalEnvironmentWorkflow]:
    def factory(*answers: Decision, **options: object) -> OperationalEnvironmentWorkflow:
        return OperationalEnvironmentWorkflow(
            engine=make_engine(*answers, **options),
            resolver=PendingRequestResolver(remote),
            locks=locks,
            store=store,
        )

    return factory
