"""Follow up on registration requests the server has not decided yet."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from acvpmeta.domain.errors import PendingError
from acvpmeta.domain.identifiers import UNSET, Pending

if TYPE_CHECKING:
    from acvpmeta.domain.identifiers import EntityId
    from acvpmeta.domain.model import IdentifiedRecord
    from acvpmeta.domain.ports.remote import RemoteRegistry

log = getLogger(__name__)


class PendingRequestResolver:
    def __init__(self, remote: RemoteRegistry) -> None:
        self.remote = remote

    def resolve(self, ident: EntityId, *, label: str = "identifier") -> EntityId:
        """Return the current server view of ``ident``.

        Identifiers that are not pending come back unchanged. A rejection
        recorded on an earlier run is reported once and cleared, so the
        entity is registered afresh.
        """

        if not isinstance(ident, Pending):
            return ident
        if ident.rejected:
            log.warning("Request for %s was rejected on an earlier run; registering again", label)
            return UNSET

        ticket = self.remote.request_status(ident.request_id)
        resolved = ticket.to_entity_id()
        if isinstance(resolved, Pending):
            if resolved.rejected:
                log.error("Request %d for %s was rejected by the server", ident.request_id, label)
            else:
                log.info("Request %d for %s is still %s", ident.request_id, label, ticket.state)
        else:
            log.info("Request %d for %s approved as %s", ident.request_id, label, resolved)
        return resolved

    def resolve_record(self, record: IdentifiedRecord) -> None:
        """Resolve every pending identifier of ``record``.

        Raises ``PendingError`` if any identifier is still waiting or was
        rejected just now; resolved values are written back either way.
        """

        waiting: list[str] = []
        rejected: list[str] = []
        for name, ident in record.identifiers().items():
            resolved = self.resolve(ident, label=f"{record.key}.{name}")
            record.set_identifier(name, resolved)
            if isinstance(resolved, Pending):
                (rejected if resolved.rejected else waiting).append(name)

        if waiting or rejected:
            parts = []
            if waiting:
                parts.append(f"awaiting approval: {', '.join(waiting)}")
            if rejected:
                parts.append(f"rejected: {', '.join(rejected)}")
            raise PendingError(
                f"{record.key} skipped ({'; '.join(parts)})",
                waiting=waiting,
                rejected=rejected,
            )
