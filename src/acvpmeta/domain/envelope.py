"""Versioned JSON envelope used on every request and response.

Requests are sent as ``[{"acvVersion": "1.0"}, {...payload...}]``. Responses
use the same two-element array in either order, except error bodies which
may arrive as a bare object.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Final

from acvpmeta.domain.errors import MalformedError

if TYPE_CHECKING:
    from collections.abc import Mapping

VERSION_KEY: Final[str] = "acvVersion"


def add_version(payload: Mapping[str, object], *, version: str) -> list[dict[str, object]]:
    return [{VERSION_KEY: version}, dict(payload)]


def encode_request(payload: Mapping[str, object], *, version: str) -> bytes:
    return json.dumps(add_version(payload, version=version)).encode("utf-8")


def split_version(parsed: object) -> dict[str, object]:
    """Return the data object of an already parsed response."""

    if isinstance(parsed, dict):
        return parsed
    if not isinstance(parsed, list):
        raise MalformedError(f"Unexpected JSON type at top level: {type(parsed).__name__}")

    version: dict[str, object] | None = None
    data: dict[str, object] | None = None
    for member in parsed:
        if not isinstance(member, dict):
            raise MalformedError("Envelope members must be JSON objects")
        if VERSION_KEY in member:
            if version is not None:
                raise MalformedError("Envelope carries more than one version object")
            version = member
        else:
            if data is not None:
                raise MalformedError("Envelope carries more than one data object")
            data = member

    if version is None or data is None:
        raise MalformedError("Envelope needs one version object and one data object")
    return data


def strip_version(raw: bytes | str) -> tuple[object, dict[str, object]]:
    """Parse a response body into ``(full_parsed, data_object)``."""

    try:
        parsed = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise MalformedError(f"Response is not valid JSON: {exc}") from exc
    return parsed, split_version(parsed)
