"""Simplified field: the unit the schema model compares and evolves.

A field is either a scalar (``String``, ``Int64``, ``DateTime``, ``ID``) or an
object reference. Object references come in two shapes:

- **core edge**: single object ``details_startPeriod_c_edge: Period``, the
  resolved side of a checksum field
- **edge**: array ``member: [Member!]``, maintained from the chain edge table

``merge`` implements the update rules for an existing field. It never
tightens: nullable stays nullable, array-ness and scalar types never change,
an object target may only widen to a supertype.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field, replace
from typing import Any

from graphql.language import (
    EnumValueNode,
    FieldDefinitionNode,
    ListTypeNode,
    ListValueNode,
    NamedTypeNode,
    NonNullTypeNode,
)

from doccache.core.errors import IncompatibleEdgeTargetError, IncompatibleFieldError

GQL_ID = "ID"
GQL_INT64 = "Int64"
GQL_DATETIME = "DateTime"
GQL_STRING = "String"

SCALAR_TYPES = frozenset({GQL_ID, GQL_INT64, GQL_DATETIME, GQL_STRING})

DOCUMENT_INTERFACE = "Document"

# (old_target, new_target) -> True if new_target is a supertype of old_target
Widens = Callable[[str, str], bool]


@dataclass(frozen=True)
class SimplifiedField:
    """Name, type and storage flags of one GraphQL field."""

    name: str
    type: str
    non_null: bool = False
    is_array: bool = False
    is_id: bool = False
    indexes: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def scalar(
        cls,
        name: str,
        gql_type: str,
        index: str | Iterable[str] | None = None,
        *,
        non_null: bool = False,
        is_id: bool = False,
    ) -> SimplifiedField:
        if index is None:
            indexes: tuple[str, ...] = ()
        elif isinstance(index, str):
            indexes = (index,)
        else:
            indexes = tuple(index)
        return cls(name=name, type=gql_type, non_null=non_null, is_id=is_id, indexes=indexes)

    @classmethod
    def edge(cls, name: str, target: str) -> SimplifiedField:
        """Array edge field, always nullable."""
        return cls(name=name, type=target, is_array=True)

    @classmethod
    def core_edge(cls, name: str, target: str) -> SimplifiedField:
        """Single object reference paired with a checksum field."""
        return cls(name=name, type=target)

    @classmethod
    def from_definition(cls, node: FieldDefinitionNode) -> SimplifiedField:
        """Build from a parsed SDL field definition."""
        type_node = node.type
        non_null = isinstance(type_node, NonNullTypeNode)
        if non_null:
            type_node = type_node.type
        is_array = isinstance(type_node, ListTypeNode)
        if is_array:
            type_node = type_node.type
            if isinstance(type_node, NonNullTypeNode):
                type_node = type_node.type
        if not isinstance(type_node, NamedTypeNode):
            raise IncompatibleFieldError(f"Unsupported type for field: {node.name.value}")

        is_id = type_node.name.value == GQL_ID
        indexes: list[str] = []
        for directive in node.directives or ():
            directive_name = directive.name.value
            if directive_name == "id":
                is_id = True
            elif directive_name == "search":
                indexes.extend(_search_indexes(directive.arguments))

        return cls(
            name=node.name.value,
            type=type_node.name.value,
            non_null=non_null,
            is_array=is_array,
            is_id=is_id,
            indexes=tuple(indexes),
        )

    @property
    def is_object(self) -> bool:
        return self.type not in SCALAR_TYPES

    @property
    def is_core_edge(self) -> bool:
        return self.is_object and not self.is_array

    @property
    def is_edge(self) -> bool:
        return self.is_object and self.is_array

    def as_id(self) -> SimplifiedField:
        """Promote to primary key: ids are always non-null."""
        return replace(self, is_id=True, non_null=True)

    def with_type(self, gql_type: str) -> SimplifiedField:
        return replace(self, type=gql_type)

    def merge(self, new: SimplifiedField, widens: Widens, *, owner: str = "") -> SimplifiedField:
        """Combine this (existing) field with an incoming definition.

        Returns the field that should be stored; equal to ``self`` when the
        incoming definition adds nothing.

        Raises:
            IncompatibleFieldError: array-ness or scalar type change, or a
                nullable field becoming non-null
            IncompatibleEdgeTargetError: object targets with no common
                supertype reachable by widening
        """
        where = f"{owner}.{self.name}" if owner else self.name
        if new.is_array != self.is_array:
            kind = "an array" if new.is_array else "a scalar"
            raise IncompatibleFieldError(f"Can't make field: {where} {kind}").with_context(
                type_name=owner or None, field=self.name
            )

        if new.non_null and not self.non_null and not self.is_id:
            raise IncompatibleFieldError(
                f"Can't make nullable field: {where} non null"
            ).with_context(type_name=owner or None, field=self.name)

        target = self.type
        if new.type != self.type:
            if not (self.is_object and new.is_object):
                raise IncompatibleFieldError(
                    f"Can't change type of field: {where} from: {self.type} to: {new.type}"
                ).with_context(type_name=owner or None, field=self.name)
            if widens(self.type, new.type):
                target = new.type
            elif not widens(new.type, self.type):
                raise IncompatibleEdgeTargetError(
                    f"Can't change target of field: {where} from: {self.type} to: {new.type}"
                ).with_context(type_name=owner or None, field=self.name)

        indexes = self.indexes + tuple(i for i in new.indexes if i not in self.indexes)
        return replace(self, type=target, indexes=indexes)

    def to_sdl(self) -> str:
        """Render as an SDL field definition line."""
        if self.is_array:
            type_stmt = f"[{self.type}!]"
        else:
            type_stmt = self.type
        if self.non_null:
            type_stmt += "!"
        stmt = f"{self.name}: {type_stmt}"
        if self.is_id and self.type != GQL_ID:
            stmt += " @id"
        if self.indexes:
            stmt += f" @search(by: [{', '.join(self.indexes)}])"
        return stmt

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type,
            "non_null": self.non_null,
            "is_array": self.is_array,
            "is_id": self.is_id,
            "indexes": list(self.indexes),
        }


def _search_indexes(arguments: Any) -> list[str]:
    indexes = []
    for argument in arguments or ():
        if argument.name.value != "by":
            continue
        value = argument.value
        values = value.values if isinstance(value, ListValueNode) else (value,)
        for item in values:
            if isinstance(item, EnumValueNode):
                indexes.append(item.value)
    return indexes


__all__ = [
    "DOCUMENT_INTERFACE",
    "GQL_DATETIME",
    "GQL_ID",
    "GQL_INT64",
    "GQL_STRING",
    "SCALAR_TYPES",
    "SimplifiedField",
    "Widens",
]
