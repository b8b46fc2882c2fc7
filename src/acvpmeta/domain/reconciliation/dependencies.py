"""Build and match processor and software dependencies of an OE."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, ClassVar

from acvpmeta.domain.errors import MalformedError
from acvpmeta.domain.identifiers import Final, id_from_url
from acvpmeta.domain.types import EntityKind, Resource

from .contracts import MATCHED, NOT_FOUND, MatchResult

if TYPE_CHECKING:
    from collections.abc import Mapping

    from acvpmeta.domain.model import OperationalEnvironment

    from .contracts import Payload, RemoteContext

log = getLogger(__name__)


def required_str(remote: Mapping[str, object], key: str) -> str:
    value = remote.get(key)
    if not isinstance(value, str):
        raise MalformedError(f"Remote record lacks string field {key!r}")
    return value


def optional_str(remote: Mapping[str, object], key: str) -> str | None:
    value = remote.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise MalformedError(f"Remote field {key!r} is not a string")
    return value


def same(field: str, local: str | None, remote: str | None) -> bool:
    if local == remote:
        return True
    log.debug("Field %s differs: local %r, remote %r", field, local, remote)
    return False


def capture_id(oe: OperationalEnvironment, id_field: str, remote: Mapping[str, object]) -> None:
    oe.set_identifier(id_field, Final(id_from_url(required_str(remote, "url"))))


def _is_type(remote: Mapping[str, object], expected: str) -> bool:
    kind = required_str(remote, "type")
    if kind != expected:
        log.debug("Remote dependency is of type %s, expected %s", kind, expected)
        return False
    return True


def _processor_fields(oe: OperationalEnvironment) -> dict[str, str | None]:
    return {
        "manufacturer": oe.manufacturer,
        "family": oe.proc_family,
        "name": oe.proc_name,
        "series": oe.proc_series,
    }


def _describe_processor(oe: OperationalEnvironment) -> str:
    parts = ["Processor"]
    label = oe.proc_name or oe.proc_series
    if label:
        parts.append(label)
    if oe.proc_family:
        parts.append(f"(processor family {oe.proc_family})")
    if oe.manufacturer:
        parts.append(f"from {oe.manufacturer}")
    return " ".join(parts)


class ProcessorDependency:
    kind: ClassVar[EntityKind] = EntityKind.PROCESSOR
    resource: ClassVar[Resource] = Resource.DEPENDENCIES
    id_field: ClassVar[str] = "processor_id"

    def applicable(self, oe: OperationalEnvironment) -> bool:
        return any((oe.manufacturer, oe.proc_family, oe.proc_name, oe.proc_series))

    def search_text(self, oe: OperationalEnvironment) -> str | None:
        return oe.proc_name or oe.proc_series or oe.manufacturer or oe.proc_family

    def build(self, oe: OperationalEnvironment, context: RemoteContext | None = None) -> Payload:
        # Feature flags stay local; the dependency schema has no field for them.
        payload: Payload = {"type": "processor"}
        payload.update(
            {key: value for key, value in _processor_fields(oe).items() if value is not None}
        )
        payload["description"] = _describe_processor(oe)
        return payload

    def match(
        self,
        oe: OperationalEnvironment,
        remote: Mapping[str, object],
        context: RemoteContext | None = None,
    ) -> MatchResult:
        if not _is_type(remote, "processor"):
            return NOT_FOUND

        for field, value in _processor_fields(oe).items():
            if value is None:
                optional_str(remote, field)
            elif not same(field, value, required_str(remote, field)):
                return NOT_FOUND

        capture_id(oe, self.id_field, remote)
        return MATCHED


class SoftwareDependency:
    kind: ClassVar[EntityKind] = EntityKind.SOFTWARE
    resource: ClassVar[Resource] = Resource.DEPENDENCIES
    id_field: ClassVar[str] = "software_id"

    def applicable(self, oe: OperationalEnvironment) -> bool:
        return oe.has_software

    def search_text(self, oe: OperationalEnvironment) -> str | None:
        return oe.env_name

    def build(
        self, oe: OperationalEnvironment, context: RemoteContext | None = None
    ) -> Payload | None:
        if not oe.env_name:
            return None

        cpe: str | None = None
        swid: str | None = None
        if oe.cpe:
            cpe = oe.cpe
        elif oe.swid:
            swid = oe.swid
        else:
            log.debug("No CPE or SWID found for %s", oe.env_name)

        return {
            "type": "software",
            "name": oe.env_name,
            "cpe": cpe,
            "swid": swid,
            "description": oe.description or oe.env_name,
        }

    def match(
        self,
        oe: OperationalEnvironment,
        remote: Mapping[str, object],
        context: RemoteContext | None = None,
    ) -> MatchResult:
        if not _is_type(remote, "software"):
            return NOT_FOUND
        if not same("name", oe.env_name, required_str(remote, "name")):
            return NOT_FOUND

        remote_cpe = optional_str(remote, "cpe")
        remote_swid = optional_str(remote, "swid")
        if oe.cpe and not same("cpe", oe.cpe, remote_cpe):
            return NOT_FOUND
        if not oe.cpe and oe.swid and not same("swid", oe.swid, remote_swid):
            return NOT_FOUND
        if not oe.cpe and not oe.swid and (remote_cpe or remote_swid):
            log.debug("Remote software carries CPE/SWID, local %s has neither", oe.env_name)
            return NOT_FOUND

        description = oe.description or oe.env_name
        if not same("description", description, required_str(remote, "description")):
            return NOT_FOUND

        capture_id(oe, self.id_field, remote)
        return MATCHED


PROCESSOR = ProcessorDependency()
SOFTWARE = SoftwareDependency()
