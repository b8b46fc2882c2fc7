"""Error taxonomy shared by the reconciliation core and its adapters."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable


class ReconciliationError(RuntimeError):
    """Base class for failures while reconciling one local record."""


class InvalidArgumentError(ReconciliationError):
    """Required local context is missing or used out of order."""


class NotFoundError(ReconciliationError):
    """The server holds no record equivalent to the local one."""


class MalformedError(ReconciliationError):
    """The server sent JSON that cannot be parsed or has an unexpected shape."""


class ConflictError(ReconciliationError):
    """Local data diverges from the server and every offered resolution was declined."""


class TransientError(ReconciliationError):
    """Network or server failure that survived the transport's own retries."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class PendingError(ReconciliationError):
    """At least one identifier still awaits a server-side decision.

    This is a soft outcome: the record is skipped for the current run and
    picked up again later.
    """

    def __init__(
        self,
        message: str,
        *,
        waiting: Iterable[str] = (),
        rejected: Iterable[str] = (),
    ) -> None:
        super().__init__(message)
        self.waiting = tuple(waiting)
        self.rejected = tuple(rejected)
