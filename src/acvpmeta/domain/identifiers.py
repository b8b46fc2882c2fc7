"""Server identifiers with their request status overlay.

Identifiers are persisted as 32-bit unsigned integers. While a registration
request is in flight, one of three status bits is set and the low bits carry
the request number instead of the entity number. The sign bit stays untouched.

Domain code does not work on the raw integers: ``from_raw`` turns them into
``Unset``, ``Pending`` or ``Final`` values and ``to_raw`` converts back at the
persistence boundary.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import IntEnum
from typing import Final as FinalConst

from .errors import MalformedError

REQUEST_INITIAL: FinalConst[int] = 1 << 30
REQUEST_PROCESSING: FinalConst[int] = 1 << 29
REQUEST_REJECTED: FinalConst[int] = 1 << 28
REQUEST_MASK: FinalConst[int] = REQUEST_INITIAL | REQUEST_PROCESSING | REQUEST_REJECTED

MAX_NUMERIC_ID: FinalConst[int] = REQUEST_REJECTED - 1
_RAW_LIMIT: FinalConst[int] = 1 << 31

_TRAILING_NUMBER = re.compile(r"(\d+)/*$")


class RequestStatus(IntEnum):
    INITIAL = REQUEST_INITIAL
    PROCESSING = REQUEST_PROCESSING
    REJECTED = REQUEST_REJECTED


def encode_status(numeric: int, status: RequestStatus) -> int:
    if not 0 <= numeric <= MAX_NUMERIC_ID:
        raise ValueError(f"Identifier {numeric} does not fit below the status bits")
    return numeric | int(status)


def decode(raw: int) -> int:
    return raw & ~REQUEST_MASK


def is_valid(raw: int) -> bool:
    return raw != 0 and not raw & REQUEST_MASK


def is_pending(raw: int) -> bool:
    return bool(raw & REQUEST_MASK)


@dataclass(frozen=True, slots=True)
class Unset:
    """No identifier known yet."""

    def __str__(self) -> str:
        return "unset"


@dataclass(frozen=True, slots=True)
class Pending:
    """A submitted request the server has not decided on (or has rejected)."""

    status: RequestStatus
    request_id: int = 0

    def __post_init__(self) -> None:
        if not 0 <= self.request_id <= MAX_NUMERIC_ID:
            raise ValueError(f"Request id {self.request_id} out of range")

    @property
    def rejected(self) -> bool:
        return self.status is RequestStatus.REJECTED

    def __str__(self) -> str:
        if self.rejected:
            return "rejected"
        return f"request {self.request_id} ({self.status.name.lower()})"


@dataclass(frozen=True, slots=True)
class Final:
    """An identifier assigned by the server."""

    id: int

    def __post_init__(self) -> None:
        if not 0 < self.id <= MAX_NUMERIC_ID:
            raise ValueError(f"Identifier {self.id} out of range")

    def __str__(self) -> str:
        return str(self.id)


type EntityId = Unset | Pending | Final

UNSET: FinalConst[Unset] = Unset()
REJECTED: FinalConst[Pending] = Pending(RequestStatus.REJECTED)


def from_raw(raw: int) -> EntityId:
    if not 0 <= raw < _RAW_LIMIT:
        raise ValueError(f"Raw identifier {raw} outside the 31-bit range")
    flags = [status for status in RequestStatus if raw & status]
    if len(flags) > 1:
        raise ValueError(f"Raw identifier {raw:#x} carries more than one status bit")
    if flags:
        (status,) = flags
        numeric = decode(raw)
        return Pending(status, 0 if status is RequestStatus.REJECTED else numeric)
    if raw == 0:
        return UNSET
    return Final(raw)


def to_raw(ident: EntityId) -> int:
    match ident:
        case Unset():
            return 0
        case Pending(status=status, request_id=request_id):
            return encode_status(request_id, status)
        case Final(id=numeric):
            return numeric


def id_from_url(url: str) -> int:
    """Return the trailing number of a server URL such as ``/acvp/v1/oes/12``."""

    match = _TRAILING_NUMBER.search(url.strip())
    if match is None:
        raise MalformedError(f"No trailing identifier in URL: {url!r}")
    value = int(match.group(1))
    if not 0 < value <= MAX_NUMERIC_ID:
        raise MalformedError(f"Identifier in URL {url!r} is out of range")
    return value
