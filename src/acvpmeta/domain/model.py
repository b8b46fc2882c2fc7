"""Locally declared records that mirror entities on the validation server."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, ClassVar

from acvpmeta.domain.identifiers import UNSET, EntityId, from_raw, to_raw
from acvpmeta.domain.types import EnvType, ProcessorFeature

if TYPE_CHECKING:
    from collections.abc import Mapping


@dataclass(eq=False, kw_only=True)
class IdentifiedRecord:
    """A configuration record carrying server identifiers.

    ``key`` is stable across runs; it names the record in the identifier
    store and selects its entity lock.
    """

    key: str

    # class-level list of identifier attributes; subclasses must override
    IDENTIFIER_FIELDS: ClassVar[tuple[str, ...]] = ()

    def identifier(self, name: str) -> EntityId:
        self._check_field(name)
        return getattr(self, name)

    def set_identifier(self, name: str, value: EntityId) -> None:
        self._check_field(name)
        setattr(self, name, value)

    def identifiers(self) -> dict[str, EntityId]:
        return {name: getattr(self, name) for name in self.IDENTIFIER_FIELDS}

    def load_raw(self, values: Mapping[str, int]) -> None:
        """Replace identifiers with persisted raw values; unknown fields are ignored."""
        for name in self.IDENTIFIER_FIELDS:
            setattr(self, name, from_raw(values.get(name, 0)))

    def dump_raw(self) -> dict[str, int]:
        return {name: to_raw(getattr(self, name)) for name in self.IDENTIFIER_FIELDS}

    def _check_field(self, name: str) -> None:
        if name not in self.IDENTIFIER_FIELDS:
            raise KeyError(f"{type(self).__name__} has no identifier {name!r}")


@dataclass(eq=False, kw_only=True)
class OperationalEnvironment(IdentifiedRecord):
    """Software/hardware context a module runs in, plus its processor."""

    env_type: EnvType = EnvType.SOFTWARE
    env_name: str | None = None
    cpe: str | None = None
    swid: str | None = None
    description: str | None = None

    manufacturer: str | None = None
    proc_family: str | None = None
    proc_name: str | None = None
    proc_series: str | None = None
    features: ProcessorFeature = ProcessorFeature.NONE

    oe_id: EntityId = UNSET
    software_id: EntityId = UNSET
    processor_id: EntityId = UNSET

    IDENTIFIER_FIELDS: ClassVar[tuple[str, ...]] = ("oe_id", "software_id", "processor_id")

    @property
    def has_software(self) -> bool:
        return bool(self.env_name)


@dataclass(eq=False, kw_only=True)
class Vendor(IdentifiedRecord):
    name: str
    url: str | None = None
    contact_name: str | None = None
    contact_email: str | None = None
    contact_phone: str | None = None
    street: str | None = None
    locality: str | None = None
    region: str | None = None
    country: str | None = None
    postal_code: str | None = None

    vendor_id: EntityId = UNSET
    person_id: EntityId = UNSET
    address_id: EntityId = UNSET

    IDENTIFIER_FIELDS: ClassVar[tuple[str, ...]] = ("vendor_id", "person_id", "address_id")


@dataclass(eq=False, kw_only=True)
class ModuleInfo(IdentifiedRecord):
    name: str
    version: str | None = None
    module_type: str | None = None
    description: str | None = None

    module_id: EntityId = UNSET

    IDENTIFIER_FIELDS: ClassVar[tuple[str, ...]] = ("module_id",)


@dataclass(eq=False, kw_only=True)
class Definition:
    """One module as tested on one operational environment."""

    module: ModuleInfo
    vendor: Vendor
    oe: OperationalEnvironment
    algorithms: tuple[str, ...] = field(default_factory=tuple)

    def __str__(self) -> str:
        return f"{self.module.name} / {self.vendor.name} / {self.oe.key}"
