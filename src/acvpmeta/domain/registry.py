"""Ordered definition registry with a resume-after cursor."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

    from acvpmeta.domain.model import Definition, OperationalEnvironment


@dataclass(frozen=True, slots=True)
class Cursor:
    """Position of the last definition handed out by ``find``."""

    position: int


@dataclass(frozen=True, slots=True)
class SearchCriteria:
    """Fields to compare; ``None`` matches anything.

    Names are compared exactly unless ``fuzzy`` is set, in which case a
    case-insensitive substring match is used.
    """

    module_name: str | None = None
    module_version: str | None = None
    vendor_name: str | None = None
    env_name: str | None = None
    processor: str | None = None
    fuzzy: bool = False

    def _same(self, wanted: str | None, actual: str | None) -> bool:
        if wanted is None:
            return True
        if actual is None:
            return False
        if self.fuzzy:
            return wanted.casefold() in actual.casefold()
        return wanted == actual

    def matches(self, definition: Definition) -> bool:
        oe = definition.oe
        return (
            self._same(self.module_name, definition.module.name)
            and self._same(self.module_version, definition.module.version)
            and self._same(self.vendor_name, definition.vendor.name)
            and self._same(self.env_name, oe.env_name)
            and (
                self._same(self.processor, oe.proc_name)
                or self._same(self.processor, oe.proc_series)
            )
        )


class DefinitionRegistry:
    """Definitions in registration order.

    Filled once before reconciliation starts; it is not locked.
    """

    def __init__(self) -> None:
        self._definitions: list[Definition] = []

    def register(self, definition: Definition) -> None:
        self._definitions.append(definition)

    def __len__(self) -> int:
        return len(self._definitions)

    def __iter__(self) -> Iterator[Definition]:
        return iter(self._definitions)

    def find(
        self, criteria: SearchCriteria, *, after: Cursor | None = None
    ) -> tuple[Definition, Cursor] | None:
        start = 0 if after is None else after.position + 1
        for position in range(start, len(self._definitions)):
            definition = self._definitions[position]
            if criteria.matches(definition):
                return definition, Cursor(position)
        return None

    def iter_matches(self, criteria: SearchCriteria) -> Iterator[Definition]:
        cursor: Cursor | None = None
        while (found := self.find(criteria, after=cursor)) is not None:
            definition, cursor = found
            yield definition

    def operational_environments(self) -> list[OperationalEnvironment]:
        """Distinct OE records, first occurrence order."""
        seen: dict[str, OperationalEnvironment] = {}
        for definition in self._definitions:
            seen.setdefault(definition.oe.key, definition.oe)
        return list(seen.values())
