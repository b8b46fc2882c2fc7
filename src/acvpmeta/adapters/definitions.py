"""Load module definitions from a JSON file.

The file declares shared vendor and OE records by key and lists the
definitions that combine them::

    {
      "vendors": {"acme": {"vendorName": "Acme", ...}},
      "oes": {"linux-skylake": {"oeEnvName": "Linux 5.4", "manufacturer": "Intel", ...}},
      "definitions": [
        {"module": {"moduleName": "Acme Crypto", ...}, "vendor": "acme",
         "oe": "linux-skylake", "algorithms": ["AES-GCM"]}
      ]
    }

Definitions naming the same OE key share one ``OperationalEnvironment``
instance, and with it one lock and one set of identifiers.
"""

from __future__ import annotations

import json
from logging import getLogger
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from acvpmeta.domain.model import Definition, ModuleInfo, OperationalEnvironment, Vendor
from acvpmeta.domain.registry import DefinitionRegistry
from acvpmeta.domain.types import EnvType, ProcessorFeature

if TYPE_CHECKING:
    from pathlib import Path

log = getLogger(__name__)


class DefinitionFileError(ValueError):
    """Raised when a definitions file cannot be read or is inconsistent."""


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


class DefinitionBaseModel(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class OEEntry(DefinitionBaseModel):
    env_type: EnvType = Field(default=EnvType.SOFTWARE, alias="envType")
    env_name: str | None = Field(default=None, alias="oeEnvName")
    cpe: str | None = None
    swid: str | None = None
    description: str | None = Field(default=None, alias="oeDescription")
    manufacturer: str | None = None
    proc_family: str | None = Field(default=None, alias="procFamily")
    proc_name: str | None = Field(default=None, alias="procName")
    proc_series: str | None = Field(default=None, alias="procSeries")
    features: list[str] = Field(default_factory=list)

    _normalize_blank = field_validator(
        "env_name",
        "cpe",
        "swid",
        "description",
        "manufacturer",
        "proc_family",
        "proc_name",
        "proc_series",
        mode="before",
    )(_blank_to_none)

    def to_domain(self, key: str) -> OperationalEnvironment:
        return OperationalEnvironment(
            key=f"oe:{key}",
            env_type=self.env_type,
            env_name=self.env_name,
            cpe=self.cpe,
            swid=self.swid,
            description=self.description,
            manufacturer=self.manufacturer,
            proc_family=self.proc_family,
            proc_name=self.proc_name,
            proc_series=self.proc_series,
            features=ProcessorFeature.parse(self.features),
        )


class VendorEntry(DefinitionBaseModel):
    name: str = Field(alias="vendorName")
    url: str | None = Field(default=None, alias="vendorUrl")
    contact_name: str | None = Field(default=None, alias="contactName")
    contact_email: str | None = Field(default=None, alias="contactEmail")
    contact_phone: str | None = Field(default=None, alias="contactPhone")
    street: str | None = Field(default=None, alias="addressStreet")
    locality: str | None = Field(default=None, alias="addressLocality")
    region: str | None = Field(default=None, alias="addressRegion")
    country: str | None = Field(default=None, alias="addressCountry")
    postal_code: str | None = Field(default=None, alias="addressZip")

    def to_domain(self, key: str) -> Vendor:
        return Vendor(key=f"vendor:{key}", **self.model_dump())


class ModuleEntry(DefinitionBaseModel):
    name: str = Field(alias="moduleName")
    version: str | None = Field(default=None, alias="moduleVersion")
    module_type: str | None = Field(default=None, alias="moduleType")
    description: str | None = Field(default=None, alias="moduleDescription")

    def to_domain(self) -> ModuleInfo:
        key = f"module:{self.name}"
        if self.version is not None:
            key = f"{key}:{self.version}"
        return ModuleInfo(key=key, **self.model_dump())


class DefinitionEntry(DefinitionBaseModel):
    module: ModuleEntry
    vendor: str
    oe: str
    algorithms: list[str] = Field(default_factory=list)


class DefinitionFile(DefinitionBaseModel):
    vendors: dict[str, VendorEntry] = Field(default_factory=dict)
    oes: dict[str, OEEntry] = Field(default_factory=dict)
    definitions: list[DefinitionEntry] = Field(default_factory=list)


def build_registry(document: DefinitionFile) -> DefinitionRegistry:
    vendors = {key: entry.to_domain(key) for key, entry in document.vendors.items()}
    oes = {key: entry.to_domain(key) for key, entry in document.oes.items()}
    modules: dict[str, ModuleInfo] = {}

    registry = DefinitionRegistry()
    for position, entry in enumerate(document.definitions):
        if entry.vendor not in vendors:
            raise DefinitionFileError(
                f"Definition {position} names unknown vendor {entry.vendor!r}"
            )
        if entry.oe not in oes:
            raise DefinitionFileError(f"Definition {position} names unknown OE {entry.oe!r}")
        module = entry.module.to_domain()
        module = modules.setdefault(module.key, module)
        registry.register(
            Definition(
                module=module,
                vendor=vendors[entry.vendor],
                oe=oes[entry.oe],
                algorithms=tuple(entry.algorithms),
            )
        )
    log.debug("Loaded %d definitions over %d OEs", len(registry), len(oes))
    return registry


def load_definitions(path: Path) -> DefinitionRegistry:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise DefinitionFileError(f"Cannot read definitions file {path}: {exc}") from exc
    try:
        document = DefinitionFile.model_validate(json.loads(raw))
    except json.JSONDecodeError as exc:
        raise DefinitionFileError(f"{path} is not valid JSON: {exc}") from exc
    except ValidationError as exc:
        raise DefinitionFileError(f"{path} is not a valid definitions file:\n{exc}") from exc
    try:
        return build_registry(document)
    except DefinitionFileError:
        raise
    except ValueError as exc:
        raise DefinitionFileError(f"{path}: {exc}") from exc
