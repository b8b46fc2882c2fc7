"""Build and match the operational environment record itself."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, ClassVar

from acvpmeta.domain.errors import InvalidArgumentError, MalformedError, NotFoundError
from acvpmeta.domain.identifiers import UNSET, Final, Pending, Unset, id_from_url
from acvpmeta.domain.types import EntityKind, MatchOutcome, Resource

from .contracts import NOT_FOUND, MatchResult
from .dependencies import PROCESSOR, SOFTWARE, capture_id, required_str, same

if TYPE_CHECKING:
    from collections.abc import Mapping

    from acvpmeta.domain.model import OperationalEnvironment

    from .contracts import Payload, RemoteContext

log = getLogger(__name__)


def generate_oe_name(oe: OperationalEnvironment) -> str:
    """Name the OE after its environment and processor.

    ``"Linux 5.4 on Intel Skylake i7-6700"``; the processor name is dropped
    when the series already starts with it.
    """

    parts: list[str] = []
    if oe.env_name:
        parts.append(oe.env_name)
        if oe.manufacturer or oe.proc_series or oe.proc_name:
            parts.append("on")
    if oe.manufacturer:
        parts.append(oe.manufacturer)
    if oe.proc_series:
        parts.append(oe.proc_series)
        if oe.proc_name and not oe.proc_series.startswith(oe.proc_name):
            parts.append(oe.proc_name)
    elif oe.proc_name:
        parts.append(oe.proc_name)
    return " ".join(parts)


def software_consistent(oe: OperationalEnvironment) -> bool:
    """Warn about a software dependency id kept for an OE without environment name."""

    if oe.has_software or isinstance(oe.software_id, Unset):
        return True
    log.warning(
        "OE %s has software dependency id %s but no environment name; ignoring it",
        oe.key,
        oe.software_id,
    )
    return False


class OperationalEnvironmentKind:
    kind: ClassVar[EntityKind] = EntityKind.OE
    resource: ClassVar[Resource] = Resource.OES
    id_field: ClassVar[str] = "oe_id"

    def applicable(self, oe: OperationalEnvironment) -> bool:
        return bool(generate_oe_name(oe))

    def search_text(self, oe: OperationalEnvironment) -> str | None:
        return generate_oe_name(oe) or None

    def build(self, oe: OperationalEnvironment, context: RemoteContext) -> Payload:
        urls: list[str] = []
        inline: list[Payload] = []

        def add(ident: object, build: Payload | None, kind: EntityKind) -> None:
            match ident:
                case Final(id=numeric):
                    urls.append(context.dependency_path(numeric))
                case Unset():
                    if build is not None:
                        inline.append(build)
                case Pending():
                    raise InvalidArgumentError(
                        f"OE {oe.key}: {kind} dependency is still awaiting approval"
                    )

        if PROCESSOR.applicable(oe):
            add(oe.processor_id, PROCESSOR.build(oe), EntityKind.PROCESSOR)
        if oe.has_software:
            add(oe.software_id, SOFTWARE.build(oe), EntityKind.SOFTWARE)

        payload: Payload = {"name": generate_oe_name(oe)}
        if urls:
            payload["dependencyUrls"] = urls
        if inline:
            payload["dependencies"] = inline
        if not urls and not inline:
            log.warning("No dependencies found for OE %s", oe.key)
        return payload

    def match(
        self,
        oe: OperationalEnvironment,
        remote: Mapping[str, object],
        context: RemoteContext,
    ) -> MatchResult:
        if not same("name", generate_oe_name(oe), required_str(remote, "name")):
            return NOT_FOUND
        capture_id(oe, self.id_field, remote)

        drift: set[EntityKind] = set()
        embedded = remote.get("dependencies") or []
        if not isinstance(embedded, list):
            raise MalformedError("OE field 'dependencies' is not a list")
        for dependency in embedded:
            self._match_dependency(oe, dependency, drift)

        dependency_urls = remote.get("dependencyUrls") or []
        if not isinstance(dependency_urls, list):
            raise MalformedError("OE field 'dependencyUrls' is not a list")
        for url in dependency_urls:
            if not isinstance(url, str):
                raise MalformedError("OE dependency URL is not a string")
            dependency_id = id_from_url(url)
            try:
                dependency = context.fetch_dependency(dependency_id)
            except NotFoundError:
                log.info("Remote OE %s references missing dependency %s", oe.key, url)
                self._forget_dependency(oe, dependency_id, drift)
                continue
            self._match_dependency(oe, dependency, drift)

        return MatchResult(MatchOutcome.MATCHED, drift=frozenset(drift))

    def _match_dependency(
        self, oe: OperationalEnvironment, dependency: object, drift: set[EntityKind]
    ) -> None:
        if not isinstance(dependency, dict):
            raise MalformedError("OE dependency entry is not an object")

        match required_str(dependency, "type"):
            case "processor":
                strategy = PROCESSOR
            case "software":
                strategy = SOFTWARE
                if not oe.has_software:
                    log.info("Remote OE %s lists a software dependency, local has none", oe.key)
                    drift.add(strategy.kind)
                    return
            case other:
                log.debug("Ignoring dependency of unknown type %s in OE %s", other, oe.key)
                return

        if not strategy.match(oe, dependency).matched:
            log.info("Remote OE %s references a different %s dependency", oe.key, strategy.kind)
            oe.set_identifier(strategy.id_field, UNSET)
            drift.add(strategy.kind)

    def _forget_dependency(
        self, oe: OperationalEnvironment, dependency_id: int, drift: set[EntityKind]
    ) -> None:
        """Drop a local id pointing at the missing record and mark the OE for update."""

        for strategy in (PROCESSOR, SOFTWARE):
            if oe.identifier(strategy.id_field) == Final(dependency_id):
                oe.set_identifier(strategy.id_field, UNSET)
                drift.add(strategy.kind)
                return
        drift.add(self.kind)


OE = OperationalEnvironmentKind()
