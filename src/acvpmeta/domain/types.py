"""Enumerations shared by the reconciliation domain."""

from __future__ import annotations

from enum import IntFlag, StrEnum


class EntityKind(StrEnum):
    """Entity kinds whose remote records the engine can mutate."""

    PROCESSOR = "processor"
    SOFTWARE = "software"
    OE = "oe"


class EnvType(StrEnum):
    """Kind of operational environment a module runs in."""

    SOFTWARE = "software"
    HARDWARE = "hardware"
    FIRMWARE = "firmware"


class ProcessorFeature(IntFlag):
    """Processor capabilities a module may rely on."""

    NONE = 0
    RDRAND = 1 << 0
    AES_NI = 1 << 1
    CLMULNI = 1 << 2
    CPACF = 1 << 3
    AES = 1 << 4

    @classmethod
    def parse(cls, names: list[str] | tuple[str, ...]) -> ProcessorFeature:
        flags = cls.NONE
        for name in names:
            key = name.strip().upper().replace("-", "_")
            try:
                flags |= cls[key]
            except KeyError as exc:
                raise ValueError(f"Unknown processor feature: {name}") from exc
        return flags


class Resource(StrEnum):
    """Server collections the client talks to."""

    DEPENDENCIES = "dependencies"
    OES = "oes"
    REQUESTS = "requests"


class HttpVerb(StrEnum):
    """Submission verbs; ``NONE`` means no request is required."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    NONE = "NONE"


class MatchOutcome(StrEnum):
    MATCHED = "matched"
    NOT_FOUND = "not_found"


class SearchControl(StrEnum):
    """Returned by paging callbacks to continue or end a search."""

    CONTINUE = "continue"
    STOP = "stop"


class ReconcileState(StrEnum):
    UNKNOWN = "unknown"
    VALIDATING = "validating"
    MATCHED = "matched"
    MISMATCHED = "mismatched"
    NOT_FOUND = "not_found"
    REGISTERED = "registered"
    DELETED = "deleted"
    SKIPPED = "skipped"


class RequestState(StrEnum):
    """Server-side states of a submitted request."""

    INITIAL = "initial"
    PROCESSING = "processing"
    APPROVED = "approved"
    REJECTED = "rejected"
