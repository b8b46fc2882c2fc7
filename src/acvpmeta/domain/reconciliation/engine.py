"""Validate local entities against the server and submit what differs.

One engine instance is shared by all workflows of a run; it holds no
per-record state. Callers must hold the record's entity lock.
"""

from __future__ import annotations

import json
from logging import getLogger
from typing import TYPE_CHECKING

from acvpmeta.domain.envelope import strip_version
from acvpmeta.domain.errors import ConflictError, InvalidArgumentError, NotFoundError
from acvpmeta.domain.identifiers import UNSET, Final, Pending, Unset
from acvpmeta.domain.ports.decisions import Decision, Question
from acvpmeta.domain.types import (
    EntityKind,
    HttpVerb,
    ReconcileState,
    RequestState,
    Resource,
    SearchControl,
)

from .contracts import NOT_FOUND, Outcome, ValidationResult

if TYPE_CHECKING:
    from collections.abc import Mapping

    from acvpmeta.config import ReconcileOptions
    from acvpmeta.domain.model import OperationalEnvironment
    from acvpmeta.domain.ports.decisions import DecisionPolicy
    from acvpmeta.domain.ports.remote import RemoteRegistry

    from .contracts import EntityStrategy, MatchResult

log = getLogger(__name__)

PROCESSOR_UPDATE_GUIDANCE = (
    "OE dependency for processor updated - repeat the operation for the operational "
    "environment after the processor update was approved, as the OE name is derived "
    "from the processor"
)


def _pretty(data: object) -> str:
    return json.dumps(data, indent=2, sort_keys=True)


class ServerContext:
    """``RemoteContext`` backed by the remote registry."""

    def __init__(self, remote: RemoteRegistry) -> None:
        self._remote = remote

    def dependency_path(self, dependency_id: int) -> str:
        return self._remote.path_for(Resource.DEPENDENCIES, dependency_id)

    def fetch_dependency(self, dependency_id: int) -> Mapping[str, object]:
        _, data = strip_version(self._remote.fetch(Resource.DEPENDENCIES, dependency_id))
        return data


class ReconciliationEngine:
    def __init__(
        self,
        *,
        remote: RemoteRegistry,
        policy: DecisionPolicy,
        options: ReconcileOptions,
    ) -> None:
        self.remote = remote
        self.policy = policy
        self.options = options
        self.context = ServerContext(remote)

    # --- validation -------------------------------------------------------

    def validate_one(
        self, strategy: EntityStrategy, oe: OperationalEnvironment, known_id: int
    ) -> ValidationResult:
        """Fetch the record the local id points at and match it."""

        self._trace(strategy, oe, ReconcileState.VALIDATING)
        try:
            raw = self.remote.fetch(strategy.resource, known_id)
        except NotFoundError:
            log.info("%s %d of %s no longer exists on the server", strategy.kind, known_id, oe.key)
            return ValidationResult(NOT_FOUND)

        _, data = strip_version(raw)
        result = strategy.match(oe, data, self.context)
        self._trace_match(strategy, oe, result)
        return ValidationResult(result, data)

    def validate_all(
        self, strategy: EntityStrategy, oe: OperationalEnvironment
    ) -> ValidationResult:
        """Search the collection by name and stop at the first matching record."""

        text = strategy.search_text(oe)
        if not text:
            raise InvalidArgumentError(f"{strategy.kind} of {oe.key} has nothing to search for")

        self._trace(strategy, oe, ReconcileState.VALIDATING)
        found: list[tuple[MatchResult, Mapping[str, object]]] = []

        def on_item(item: Mapping[str, object]) -> SearchControl:
            result = strategy.match(oe, item, self.context)
            if result.matched:
                found.append((result, item))
                return SearchControl.STOP
            return SearchControl.CONTINUE

        log.info("Searching server for %s %r", strategy.kind, text)
        self.remote.search(strategy.resource, text, on_item)
        if not found:
            self._trace_match(strategy, oe, NOT_FOUND)
            return ValidationResult(NOT_FOUND)
        result, item = found[0]
        self._trace_match(strategy, oe, result)
        return ValidationResult(result, item)

    # --- decisions --------------------------------------------------------

    def reconcile(self, strategy: EntityStrategy, oe: OperationalEnvironment) -> Outcome:
        """Bring one entity kind of ``oe`` in line with the server."""

        if not strategy.applicable(oe):
            log.debug("Nothing to reconcile for %s of %s", strategy.kind, oe.key)
            return self._outcome(strategy, oe, ReconcileState.SKIPPED)

        match oe.identifier(strategy.id_field):
            case Pending() as pending:
                raise InvalidArgumentError(
                    f"{strategy.kind} of {oe.key} is {pending}; resolve pending requests first"
                )
            case Final(id=known_id):
                result = self.validate_one(strategy, oe, known_id)
                if self.options.show_only:
                    self._show(strategy, oe, result)
                    return self._outcome(strategy, oe, self._state_of(result))
                return self._settle_known(strategy, oe, result)
            case Unset():
                self._trace(strategy, oe, ReconcileState.UNKNOWN)
                result = self.validate_all(strategy, oe)
                if self.options.show_only:
                    self._show(strategy, oe, result)
                    return self._outcome(strategy, oe, self._state_of(result))
                return self._settle_searched(strategy, oe, result)

    def _settle_known(
        self, strategy: EntityStrategy, oe: OperationalEnvironment, result: ValidationResult
    ) -> Outcome:
        kind = strategy.kind
        if result.remote is None:
            return self._settle_gone(strategy, oe)
        verb = self.verb_for(kind, result)

        if verb is None:
            log.info(
                "Local %s of %s differs from server record:\n%s",
                kind,
                oe.key,
                _pretty(strategy.build(oe, self.context)),
            )
            log.info("Server data:\n%s", _pretty(result.remote))
            if self._ask(strategy, oe, HttpVerb.PUT, "Shall the server entry be UPDATED"):
                verb = HttpVerb.PUT
            elif self._ask(strategy, oe, HttpVerb.DELETE, "Shall the server entry be DELETED"):
                verb = HttpVerb.DELETE
            else:
                log.error("Registering operation interrupted for %s of %s", kind, oe.key)
                raise ConflictError(
                    f"{kind} of {oe.key} differs from the server; all changes declined"
                )
        elif verb is HttpVerb.PUT:
            payload = strategy.build(oe, self.context)
            log.info("Updating %s of %s:\n%s", kind, oe.key, _pretty(payload))
            self._require(strategy, oe, HttpVerb.PUT, "Shall the server entry be UPDATED")
        elif verb is HttpVerb.DELETE:
            log.info("Server data to delete:\n%s", _pretty(result.remote))
            self._require(strategy, oe, HttpVerb.DELETE, "Shall the server entry be DELETED")

        if verb is HttpVerb.NONE:
            return self._outcome(strategy, oe, ReconcileState.MATCHED)

        outcome = self.register(strategy, oe, verb, asked=True)
        if verb is HttpVerb.PUT and kind is EntityKind.PROCESSOR and not self.options.dry_run:
            log.warning(PROCESSOR_UPDATE_GUIDANCE)
        return outcome

    def _settle_searched(
        self, strategy: EntityStrategy, oe: OperationalEnvironment, result: ValidationResult
    ) -> Outcome:
        if not result.matched:
            if self.options.wants_delete(strategy.kind):
                log.info("No server entry for %s of %s, nothing to delete", strategy.kind, oe.key)
                return self._outcome(strategy, oe, ReconcileState.NOT_FOUND)
            return self.register(strategy, oe, HttpVerb.POST)

        verb = self.verb_for(strategy.kind, result)
        if verb is HttpVerb.NONE:
            return self._outcome(strategy, oe, ReconcileState.MATCHED)
        # A match found by search has a fresh identifier; from here on it is a known entity.
        return self._settle_known(strategy, oe, result)

    def _settle_gone(self, strategy: EntityStrategy, oe: OperationalEnvironment) -> Outcome:
        """The local id points at a record the server no longer has."""

        if self.options.dry_run:
            log.info("Dry run: would forget %s id of %s", strategy.kind, oe.key)
            return self._outcome(strategy, oe, ReconcileState.NOT_FOUND)
        oe.set_identifier(strategy.id_field, UNSET)
        if self.options.wants_delete(strategy.kind):
            return self._outcome(strategy, oe, ReconcileState.DELETED)
        return self.register(strategy, oe, HttpVerb.POST)

    def verb_for(self, kind: EntityKind, result: ValidationResult) -> HttpVerb | None:
        """Request a validation result calls for; ``None`` means drift needing a decision."""

        if self.options.wants_delete(kind):
            return HttpVerb.DELETE
        if not result.matched:
            return None
        if self.options.wants_update(kind) or result.match.drift:
            return HttpVerb.PUT
        return HttpVerb.NONE

    # --- submission -------------------------------------------------------

    def register(
        self,
        strategy: EntityStrategy,
        oe: OperationalEnvironment,
        verb: HttpVerb,
        *,
        asked: bool = False,
    ) -> Outcome:
        """Submit ``verb`` for the entity and record the identifier the server hands back."""

        kind = strategy.kind
        if verb is HttpVerb.NONE:
            return self._outcome(strategy, oe, ReconcileState.MATCHED)
        if verb is HttpVerb.GET:
            raise InvalidArgumentError("GET is not a submission")

        payload = None
        if verb is not HttpVerb.DELETE:
            payload = strategy.build(oe, self.context)
            if payload is None:
                return self._outcome(strategy, oe, ReconcileState.SKIPPED)

        target: int | None = None
        if verb is not HttpVerb.POST:
            current = oe.identifier(strategy.id_field)
            if not isinstance(current, Final):
                raise InvalidArgumentError(f"{verb} of {kind} for {oe.key} needs a server id")
            target = current.id

        if self.options.dry_run:
            path = self.remote.path_for(strategy.resource, target)
            if payload is None:
                log.info("Dry run: would submit %s %s", verb, path)
            else:
                log.info("Dry run: would submit %s %s:\n%s", verb, path, _pretty(payload))
            return Outcome(kind, ReconcileState.SKIPPED, verb, oe.identifier(strategy.id_field))

        if not asked and not self.options.auto_register:
            if payload is not None:
                log.info("Data to register for %s of %s:\n%s", kind, oe.key, _pretty(payload))
            prompt = (
                "Shall the server entry be DELETED"
                if verb is HttpVerb.DELETE
                else "No matching server entry found - shall it be registered"
            )
            self._require(strategy, oe, verb, prompt)

        ticket = self.remote.submit(verb, strategy.resource, target, payload)
        if verb is HttpVerb.DELETE:
            if ticket.state is RequestState.REJECTED:
                log.error("Deletion of %s %s for %s was rejected", kind, target, oe.key)
                return self._outcome(strategy, oe, ReconcileState.MATCHED, verb)
            oe.set_identifier(strategy.id_field, UNSET)
            log.info("Deleted %s %s for %s", kind, target, oe.key)
            return self._outcome(strategy, oe, ReconcileState.DELETED, verb)

        new_id = ticket.to_entity_id()
        oe.set_identifier(strategy.id_field, new_id)
        log.info("Submitted %s of %s for %s: %s", verb, kind, oe.key, new_id)
        return self._outcome(strategy, oe, ReconcileState.REGISTERED, verb)

    # --- helpers ----------------------------------------------------------

    def _ask(
        self, strategy: EntityStrategy, oe: OperationalEnvironment, verb: HttpVerb, prompt: str
    ) -> bool:
        if self.options.dry_run:
            return True
        question = Question(kind=strategy.kind, verb=verb, prompt=prompt, record_key=oe.key)
        return self.policy.decide(question) is Decision.PROCEED

    def _require(
        self, strategy: EntityStrategy, oe: OperationalEnvironment, verb: HttpVerb, prompt: str
    ) -> None:
        if not self._ask(strategy, oe, verb, prompt):
            log.error("Registering operation interrupted for %s of %s", strategy.kind, oe.key)
            raise ConflictError(f"{verb} of {strategy.kind} for {oe.key} declined")

    def _show(
        self, strategy: EntityStrategy, oe: OperationalEnvironment, result: ValidationResult
    ) -> None:
        log.info(
            "%s of %s: %s (id %s)",
            strategy.kind,
            oe.key,
            "matched" if result.matched else "not found",
            oe.identifier(strategy.id_field),
        )
        if result.remote is not None:
            log.info("Server data:\n%s", _pretty(result.remote))

    @staticmethod
    def _state_of(result: ValidationResult) -> ReconcileState:
        return ReconcileState.MATCHED if result.matched else ReconcileState.NOT_FOUND

    @staticmethod
    def _outcome(
        strategy: EntityStrategy,
        oe: OperationalEnvironment,
        state: ReconcileState,
        verb: HttpVerb = HttpVerb.NONE,
    ) -> Outcome:
        return Outcome(strategy.kind, state, verb, oe.identifier(strategy.id_field))

    @staticmethod
    def _trace(strategy: EntityStrategy, oe: OperationalEnvironment, state: ReconcileState) -> None:
        log.debug("%s of %s: %s", strategy.kind, oe.key, state)

    def _trace_match(
        self, strategy: EntityStrategy, oe: OperationalEnvironment, result: MatchResult
    ) -> None:
        if not result.matched:
            state = ReconcileState.NOT_FOUND
        elif result.drift:
            state = ReconcileState.MISMATCHED
        else:
            state = ReconcileState.MATCHED
        self._trace(strategy, oe, state)
