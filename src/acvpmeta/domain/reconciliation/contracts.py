"""Result and strategy contracts shared by matchers, engine and workflow."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, ClassVar, Protocol

from acvpmeta.domain.identifiers import UNSET, EntityId
from acvpmeta.domain.types import EntityKind, HttpVerb, MatchOutcome, ReconcileState

if TYPE_CHECKING:
    from collections.abc import Mapping

    from acvpmeta.domain.model import OperationalEnvironment
    from acvpmeta.domain.types import Resource

type Payload = dict[str, object]


@dataclass(frozen=True, slots=True)
class MatchResult:
    """Outcome of comparing one remote record with the local one.

    ``drift`` names dependency kinds whose remote counterpart differed; the
    matching local identifiers have been cleared.
    """

    outcome: MatchOutcome
    drift: frozenset[EntityKind] = field(default_factory=frozenset)

    @property
    def matched(self) -> bool:
        return self.outcome is MatchOutcome.MATCHED


MATCHED = MatchResult(MatchOutcome.MATCHED)
NOT_FOUND = MatchResult(MatchOutcome.NOT_FOUND)


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """A match result plus the remote data it was computed from."""

    match: MatchResult
    remote: Mapping[str, object] | None = None

    @property
    def matched(self) -> bool:
        return self.match.matched


@dataclass(frozen=True, slots=True)
class Outcome:
    """Terminal state of one entity kind after reconciliation."""

    kind: EntityKind
    state: ReconcileState
    verb: HttpVerb = HttpVerb.NONE
    identifier: EntityId = UNSET


class RemoteContext(Protocol):
    """Server access needed while building or matching an OE."""

    def dependency_path(self, dependency_id: int) -> str: ...

    def fetch_dependency(self, dependency_id: int) -> Mapping[str, object]: ...


class EntityStrategy(Protocol):
    """Build/match pair for one entity kind."""

    kind: ClassVar[EntityKind]
    resource: ClassVar[Resource]
    id_field: ClassVar[str]

    def applicable(self, oe: OperationalEnvironment) -> bool: ...

    def search_text(self, oe: OperationalEnvironment) -> str | None: ...

    def build(self, oe: OperationalEnvironment, context: RemoteContext) -> Payload | None: ...

    def match(
        self,
        oe: OperationalEnvironment,
        remote: Mapping[str, object],
        context: RemoteContext,
    ) -> MatchResult: ...
