"""Port for confirming mutating requests."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from acvpmeta.domain.types import EntityKind, HttpVerb


class Decision(StrEnum):
    PROCEED = "proceed"
    ABORT = "abort"


@dataclass(frozen=True, slots=True)
class Question:
    """A yes/no question about one submission the engine wants to make."""

    kind: EntityKind
    verb: HttpVerb
    prompt: str
    record_key: str
    default: Decision = Decision.PROCEED


@runtime_checkable
class DecisionPolicy(Protocol):
    def decide(self, question: Question) -> Decision: ...


__all__ = ["Decision", "DecisionPolicy", "Question"]
