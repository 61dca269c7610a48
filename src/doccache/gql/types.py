"""Simplified object types and interfaces.

``SimplifiedBaseType`` holds what types and interfaces share: a name, an
ordered ``name -> SimplifiedField`` map and the ``@withSubscription`` flag.
``SimplifiedType`` adds the ordered list of implemented interfaces
(``Document`` first for every induced type).
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from graphql.language import InterfaceTypeDefinitionNode, ObjectTypeDefinitionNode

from doccache.core.errors import IncompatibleFieldError, NonNullAdditionError
from doccache.gql.field import SimplifiedField, Widens


@dataclass
class SimplifiedBaseType:
    """Fields and directives common to object types and interfaces."""

    name: str
    fields: dict[str, SimplifiedField] = field(default_factory=dict)
    with_subscription: bool = True

    def get_field(self, name: str) -> SimplifiedField | None:
        return self.fields.get(name)

    def has_field(self, name: str) -> bool:
        return name in self.fields

    def set_field(self, simplified_field: SimplifiedField) -> None:
        self.fields[simplified_field.name] = simplified_field

    def set_fields(self, fields: Iterable[SimplifiedField]) -> None:
        for simplified_field in fields:
            self.fields[simplified_field.name] = simplified_field

    def id_field(self, name: str) -> SimplifiedField:
        """Return field ``name`` if it is an id field."""
        id_field = self.fields.get(name)
        if id_field is None:
            raise IncompatibleFieldError(f"Type: {self.name} does not have field: {name}")
        if not id_field.is_id:
            raise IncompatibleFieldError(f"Field: {name} in type: {self.name} is not an ID")
        return id_field

    def object_fields(self) -> list[SimplifiedField]:
        return [f for f in self.fields.values() if f.is_object]

    def core_field_names(self) -> list[str]:
        """Names of every field that is not an array edge."""
        return [name for name, f in self.fields.items() if not f.is_edge]

    def prepare_field_update(
        self, new: SimplifiedBaseType, widens: Widens
    ) -> tuple[list[SimplifiedField], list[SimplifiedField]]:
        """Compare ``new`` against this type.

        Returns ``(to_add, to_update)``: fields absent here, and merged
        versions of existing fields that differ from the stored ones.
        """
        to_add: list[SimplifiedField] = []
        to_update: list[SimplifiedField] = []
        for new_field in new.fields.values():
            old_field = self.fields.get(new_field.name)
            if old_field is None:
                if new_field.non_null:
                    raise NonNullAdditionError(
                        f"Can't add non null field: {new_field.name} to type: {self.name}"
                    ).with_context(type_name=self.name, field=new_field.name)
                to_add.append(new_field)
                continue
            merged = old_field.merge(new_field, widens, owner=self.name)
            if merged != old_field:
                to_update.append(merged)
        return to_add, to_update

    def render_fields(self, indent: str = "  ") -> str:
        return "\n".join(f"{indent}{f.to_sdl()}" for f in self.fields.values())


@dataclass
class SimplifiedType(SimplifiedBaseType):
    """An object type with its implemented interfaces."""

    interfaces: list[str] = field(default_factory=list)

    @classmethod
    def from_definition(cls, node: ObjectTypeDefinitionNode) -> SimplifiedType:
        fields = [SimplifiedField.from_definition(f) for f in node.fields or ()]
        return cls(
            name=node.name.value,
            fields={f.name: f for f in fields},
            with_subscription=_has_directive(node, "withSubscription"),
            interfaces=[i.name.value for i in node.interfaces or ()],
        )

    def has_interface(self, name: str) -> bool:
        return name in self.interfaces

    def add_interface(self, interface: SimplifiedBaseType, widens: Widens) -> None:
        """Implement ``interface``, merging its fields into this type."""
        to_add, to_update = self.prepare_interface_field_update(interface, widens)
        if not self.has_interface(interface.name):
            self.interfaces.append(interface.name)
        self.set_fields(to_add)
        self.set_fields(to_update)

    def prepare_interface_field_update(
        self, interface: SimplifiedBaseType, widens: Widens
    ) -> tuple[list[SimplifiedField], list[SimplifiedField]]:
        to_add: list[SimplifiedField] = []
        to_update: list[SimplifiedField] = []
        for interface_field in interface.fields.values():
            current = self.fields.get(interface_field.name)
            if current is None:
                to_add.append(interface_field)
                continue
            # The stricter definition keeps its flags (ids, non-null)
            if current.non_null and not interface_field.non_null:
                merged = current.merge(interface_field, widens, owner=self.name)
            else:
                merged = interface_field.merge(current, widens, owner=self.name)
            if merged != current:
                to_update.append(merged)
        return to_add, to_update

    def clone(self) -> SimplifiedType:
        return SimplifiedType(
            name=self.name,
            fields=dict(self.fields),
            with_subscription=self.with_subscription,
            interfaces=list(self.interfaces),
        )

    def to_sdl(self) -> str:
        header = f"type {self.name}"
        if self.interfaces:
            header += f" implements {' & '.join(self.interfaces)}"
        if self.with_subscription:
            header += " @withSubscription"
        return f"{header} {{\n{self.render_fields()}\n}}"


@dataclass
class SimplifiedInterface(SimplifiedBaseType):
    """An interface and the policy deciding which types implement it.

    A type implements the interface when its name is listed in ``types`` or
    when every signature field is present on it.
    """

    signature_fields: list[str] = field(default_factory=list)
    types: set[str] = field(default_factory=set)

    @classmethod
    def from_definition(cls, node: InterfaceTypeDefinitionNode) -> SimplifiedInterface:
        fields = [SimplifiedField.from_definition(f) for f in node.fields or ()]
        return cls(
            name=node.name.value,
            fields={f.name: f for f in fields},
            with_subscription=_has_directive(node, "withSubscription"),
        )

    def should_implement(self, simplified_type: SimplifiedBaseType) -> bool:
        if simplified_type.name in self.types:
            return True
        if not self.signature_fields:
            return False
        return all(simplified_type.has_field(name) for name in self.signature_fields)

    def validate(self) -> None:
        if not self.signature_fields and not self.types:
            raise IncompatibleFieldError(
                f"Invalid interface: {self.name}, it must have at least one "
                "signature field or type specified"
            )

    def clone(self) -> SimplifiedInterface:
        return SimplifiedInterface(
            name=self.name,
            fields=dict(self.fields),
            with_subscription=self.with_subscription,
            signature_fields=list(self.signature_fields),
            types=set(self.types),
        )

    def to_sdl(self) -> str:
        header = f"interface {self.name}"
        if self.with_subscription:
            header += " @withSubscription"
        return f"{header} {{\n{self.render_fields()}\n}}"


def _has_directive(node: ObjectTypeDefinitionNode | InterfaceTypeDefinitionNode, name: str) -> bool:
    return any(d.name.value == name for d in node.directives or ())


__all__ = [
    "SimplifiedBaseType",
    "SimplifiedInterface",
    "SimplifiedType",
]
