"""
In-memory schema model: the single authoritative copy of the GraphQL schema.

The remote admin endpoint only ever receives the text rendered from this
model; the text read back from it is parsed into the same model on startup.

Manifesto:
    - **Add-only:** fields are added or relaxed, never removed or tightened
    - **Deterministic rendering:** interfaces first, then types, both in
      insertion order, fields in insertion order
    - **Edge generalization:** an edge whose targets disagree widens to the
      ``Document`` interface instead of failing

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────────┐
        │                          Schema                               │
        │  interfaces: name -> SimplifiedInterface  (Document first)    │
        │  types:      name -> SimplifiedType       (Cursor, induced)   │
        ├──────────────────────────────────────────────────────────────┤
        │  update_type(new)            -> NONE | CREATED | UPDATED      │
        │  add_edge(type, edge, target)-> changed?                      │
        │  add_field_if_not_exists(type, field) -> changed?             │
        │  render()                    -> SDL text                      │
        │  Schema.load(sdl)            -> Schema                        │
        └──────────────────────────────────────────────────────────────┘

Examples:
    >>> schema = Schema.initial()
    >>> schema.update_type(document_type("Period"))
    <SchemaUpdateOp.CREATED: 'Created'>
    >>> schema.add_edge("Period", "member", "Member")
    Traceback (most recent call last):
    ...
    IncompatibleFieldError: Edge target type: Member does not exist

Tags:
    graphql, schema-evolution, sdl, dgraph, doccache

Doc-Types:
    - API Reference
    - Schema Evolution Guide
"""

from __future__ import annotations

from enum import Enum

from graphql import GraphQLError
from graphql.language import (
    InterfaceTypeDefinitionNode,
    ObjectTypeDefinitionNode,
    parse,
)

from doccache.core.errors import (
    IncompatibleEdgeTargetError,
    IncompatibleFieldError,
    SchemaIncompatibleError,
)
from doccache.core.logging import get_logger
from doccache.gql.base_schema import cursor_type, document_interface
from doccache.gql.field import DOCUMENT_INTERFACE, SimplifiedField
from doccache.gql.types import SimplifiedInterface, SimplifiedType

logger = get_logger(__name__)


class SchemaUpdateOp(str, Enum):
    """Outcome of ``Schema.update_type``."""

    NONE = "None"
    CREATED = "Created"
    UPDATED = "Updated"


class Schema:
    """Simplified types and interfaces making up the GraphQL schema."""

    def __init__(
        self,
        types: dict[str, SimplifiedType] | None = None,
        interfaces: dict[str, SimplifiedInterface] | None = None,
    ):
        self.types: dict[str, SimplifiedType] = types or {}
        self.interfaces: dict[str, SimplifiedInterface] = interfaces or {}

    # =========================================================================
    # Construction
    # =========================================================================

    @classmethod
    def initial(cls) -> Schema:
        """Base schema: the Document interface and the Cursor type."""
        document = document_interface()
        cursor = cursor_type()
        return cls(types={cursor.name: cursor}, interfaces={document.name: document})

    @classmethod
    def load(cls, sdl: str) -> Schema:
        """Parse SDL text as stored by the admin endpoint.

        Only object types and interfaces are kept; Dgraph directives and
        scalars (``@id``, ``@search``, ``Int64``...) need no declaration
        because the text is parsed, not validated.
        """
        try:
            document = parse(sdl)
        except GraphQLError as e:
            raise SchemaIncompatibleError(f"Failed to parse remote schema: {e.message}", cause=e) from e

        schema = cls()
        for definition in document.definitions:
            if isinstance(definition, InterfaceTypeDefinitionNode):
                interface = SimplifiedInterface.from_definition(definition)
                schema.interfaces[interface.name] = interface
            elif isinstance(definition, ObjectTypeDefinitionNode):
                simplified_type = SimplifiedType.from_definition(definition)
                schema.types[simplified_type.name] = simplified_type
        return schema

    # =========================================================================
    # Lookup
    # =========================================================================

    def get_type(self, name: str) -> SimplifiedType | None:
        return self.types.get(name)

    def has_type(self, name: str) -> bool:
        return name in self.types

    def get_interface(self, name: str) -> SimplifiedInterface | None:
        return self.interfaces.get(name)

    def has_interface(self, name: str) -> bool:
        return name in self.interfaces

    def type_names(self) -> list[str]:
        return list(self.types)

    def implements(self, type_name: str, interface_name: str) -> bool:
        simplified_type = self.types.get(type_name)
        return simplified_type is not None and simplified_type.has_interface(interface_name)

    def is_document(self, name: str) -> bool:
        """Whether ``name`` is Document, a Document type or a custom interface."""
        if name == DOCUMENT_INTERFACE:
            return True
        if name in self.interfaces:
            # Custom interfaces are only implemented by Document types
            return True
        return self.implements(name, DOCUMENT_INTERFACE)

    def widens(self, old_target: str, new_target: str) -> bool:
        """Whether ``new_target`` is ``old_target`` or one of its supertypes."""
        if old_target == new_target:
            return True
        if new_target == DOCUMENT_INTERFACE:
            return self.is_document(old_target)
        if new_target in self.interfaces:
            return self.implements(old_target, new_target)
        return False

    # =========================================================================
    # Mutation
    # =========================================================================

    def set_interface(self, interface: SimplifiedInterface) -> None:
        self.interfaces[interface.name] = interface.clone()

    def update_type(self, new_type: SimplifiedType) -> SchemaUpdateOp:
        """Install ``new_type`` or merge it into the existing definition."""
        old_type = self.types.get(new_type.name)
        if old_type is None:
            self.types[new_type.name] = new_type.clone()
            logger.info("schema_type_created", type=new_type.name, fields=len(new_type.fields))
            return SchemaUpdateOp.CREATED

        to_add, to_update = old_type.prepare_field_update(new_type, self.widens)
        new_interfaces = [i for i in new_type.interfaces if not old_type.has_interface(i)]
        if not to_add and not to_update and not new_interfaces:
            return SchemaUpdateOp.NONE

        old_type.set_fields(to_update)
        old_type.set_fields(to_add)
        old_type.interfaces.extend(new_interfaces)
        logger.info(
            "schema_type_updated",
            type=new_type.name,
            added=[f.name for f in to_add],
            updated=[f.name for f in to_update],
            interfaces=new_interfaces,
        )
        return SchemaUpdateOp.UPDATED

    def add_edge(self, type_name: str, edge_name: str, target: str) -> bool:
        """Make sure ``type_name`` has array edge ``edge_name`` reaching ``target``.

        If the edge exists with an unrelated target, it is generalized to
        ``Document`` provided its current target is a Document.
        """
        simplified_type = self._require_type(type_name)
        if target not in self.types and target not in self.interfaces:
            raise IncompatibleFieldError(f"Edge target type: {target} does not exist").with_context(
                type_name=type_name, field=edge_name
            )

        current = simplified_type.get_field(edge_name)
        if current is None:
            simplified_type.set_field(SimplifiedField.edge(edge_name, target))
            logger.info("schema_edge_added", type=type_name, edge=edge_name, target=target)
            return True

        if not current.is_edge:
            raise IncompatibleFieldError(
                f"Can't use field: {type_name}.{edge_name} of type: {current.type} as an edge"
            ).with_context(type_name=type_name, field=edge_name)

        if self.widens(target, current.type):
            return False

        if not self.is_document(current.type):
            raise IncompatibleEdgeTargetError(
                f"Can't generalize edge: {type_name}.{edge_name} from: {current.type}, "
                f"it is not a {DOCUMENT_INTERFACE}"
            ).with_context(type_name=type_name, field=edge_name, target=target)

        simplified_type.set_field(current.with_type(DOCUMENT_INTERFACE))
        logger.info(
            "schema_edge_generalized",
            type=type_name,
            edge=edge_name,
            old_target=current.type,
            new_target=target,
        )
        return True

    def add_field_if_not_exists(self, type_name: str, simplified_field: SimplifiedField) -> bool:
        simplified_type = self._require_type(type_name)
        if simplified_type.has_field(simplified_field.name):
            return False
        simplified_type.set_field(simplified_field)
        return True

    def _require_type(self, type_name: str) -> SimplifiedType:
        simplified_type = self.types.get(type_name)
        if simplified_type is None:
            raise IncompatibleFieldError(f"Type: {type_name} does not exist").with_context(
                type_name=type_name
            )
        return simplified_type

    # =========================================================================
    # Rendering
    # =========================================================================

    def render(self) -> str:
        """Full SDL text for the admin endpoint."""
        blocks = [i.to_sdl() for i in self._ordered_interfaces()]
        blocks.extend(t.to_sdl() for t in self.types.values())
        return "\n\n".join(blocks) + "\n"

    def _ordered_interfaces(self) -> list[SimplifiedInterface]:
        document = self.interfaces.get(DOCUMENT_INTERFACE)
        rest = [i for name, i in self.interfaces.items() if name != DOCUMENT_INTERFACE]
        return [document, *rest] if document is not None else rest

    def __str__(self) -> str:
        return self.render()


__all__ = ["Schema", "SchemaUpdateOp"]
