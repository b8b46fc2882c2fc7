"""Port for the validation server's metadata collections."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from acvpmeta.domain.errors import MalformedError
from acvpmeta.domain.identifiers import (
    REJECTED,
    EntityId,
    Final,
    Pending,
    RequestStatus,
)
from acvpmeta.domain.types import RequestState

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from acvpmeta.domain.types import HttpVerb, Resource, SearchControl

type SearchCallback = Callable[[Mapping[str, object]], SearchControl]


@dataclass(frozen=True, slots=True)
class RequestTicket:
    """Server answer to a submission or a request status lookup."""

    request_id: int
    state: RequestState
    approved_id: int | None = None

    def to_entity_id(self) -> EntityId:
        match self.state:
            case RequestState.APPROVED:
                if self.approved_id is None:
                    raise MalformedError(
                        f"Request {self.request_id} is approved but names no record"
                    )
                return Final(self.approved_id)
            case RequestState.REJECTED:
                return REJECTED
            case RequestState.PROCESSING:
                return Pending(RequestStatus.PROCESSING, self.request_id)
            case RequestState.INITIAL:
                return Pending(RequestStatus.INITIAL, self.request_id)


@runtime_checkable
class RemoteRegistry(Protocol):
    """What the reconciliation engine needs from the server."""

    def path_for(self, resource: Resource, entity_id: int | None = None) -> str: ...

    def fetch(self, resource: Resource, entity_id: int) -> bytes: ...

    def search(self, resource: Resource, text: str, callback: SearchCallback) -> bool:
        """Run ``callback`` over matching records; return ``True`` if it stopped the search."""
        ...

    def submit(
        self,
        verb: HttpVerb,
        resource: Resource,
        entity_id: int | None,
        payload: Mapping[str, object] | None,
    ) -> RequestTicket: ...

    def request_status(self, request_id: int) -> RequestTicket: ...


__all__ = ["RemoteRegistry", "RequestTicket", "SearchCallback"]
