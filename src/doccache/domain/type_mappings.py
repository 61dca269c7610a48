"""Label based type deduction.

A type mapping declares that a document carrying every listed content label
is of the mapped type, whatever its ``system.type`` says. Labels are compared
untyped: ``details_title`` matches ``details_title_s`` and ``details_title_n``.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from doccache.core.errors import InvalidConfigError
from doccache.core.settings import TypeMappingSpec
from doccache.domain import codec


@dataclass(frozen=True)
class TypeMapping:
    type: str
    labels: frozenset[str]

    @classmethod
    def from_spec(cls, spec: TypeMappingSpec) -> TypeMapping:
        labels = frozenset(
            f"{codec.field_prefix(group)}_{codec.lower_camel(label)}"
            for group, group_labels in spec.labels.items()
            for label in group_labels
        )
        if not labels:
            raise InvalidConfigError(f"Type mapping for: {spec.type} has no labels")
        return cls(type=spec.type, labels=labels)

    def matches(self, untyped_names: set[str]) -> bool:
        return self.labels <= untyped_names


class TypeMappings:
    """Ordered type mappings; the first match wins."""

    def __init__(self, mappings: Iterable[TypeMapping] = ()):
        self.mappings = list(mappings)

    @classmethod
    def from_specs(cls, specs: Iterable[TypeMappingSpec]) -> TypeMappings:
        return cls(TypeMapping.from_spec(spec) for spec in specs)

    def match(self, field_names: Iterable[str]) -> str | None:
        """Raw type of the first mapping whose labels are all present."""
        if not self.mappings:
            return None
        untyped = {codec.untyped_field_name(name) for name in field_names}
        for mapping in self.mappings:
            if mapping.matches(untyped):
                return mapping.type
        return None

    def __len__(self) -> int:
        return len(self.mappings)


__all__ = ["TypeMapping", "TypeMappings"]
