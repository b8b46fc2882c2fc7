"""Domain ports implemented by adapters."""

from __future__ import annotations

from acvpmeta.domain.ports.decisions import Decision, DecisionPolicy, Question
from acvpmeta.domain.ports.persistence import IdentifierStore, InMemoryIdentifierStore
from acvpmeta.domain.ports.remote import RemoteRegistry, RequestTicket, SearchCallback

__all__ = [
    "Decision",
    "DecisionPolicy",
    "IdentifierStore",
    "InMemoryIdentifierStore",
    "Question",
    "RemoteRegistry",
    "RequestTicket",
    "SearchCallback",
]
