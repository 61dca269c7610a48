"""
Projection policy built from validated settings.

``load_settings`` validates the raw YAML shape; this module turns the three
policy sections into the objects the engine works with:

- ``type-mappings``     -> ``TypeMappings``
- ``custom-interfaces`` -> ``SimplifiedInterfaces``
- ``logical-ids``       -> ``LogicalIds``

Interface field rules::

    content-group  type         fields produced
    ─────────────  ───────────  ──────────────────────────────────────────
    yes            primitive    <group>_<name>_<suffix>
    yes            object type  <group>_<name>_c and <group>_<name>_c_edge: Type
    no             primitive    <name> (lower camel case)
    no             object type  <name>: [Type!]

Example:
    >>> config = load_config("config.yml")
    >>> config.interfaces.names()
    ['Votable']
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from doccache.core.errors import DoccacheError, InvalidConfigError
from doccache.core.settings import DoccacheSettings, InterfaceFieldSpec, InterfaceSpec, load_settings
from doccache.domain import codec
from doccache.domain.codec import ContentType
from doccache.domain.logical_ids import LogicalIds
from doccache.domain.type_mappings import TypeMappings
from doccache.gql.field import SimplifiedField
from doccache.gql.interface import SimplifiedInterfaces
from doccache.gql.types import SimplifiedInterface


@dataclass
class DoccacheConfig:
    settings: DoccacheSettings
    type_mappings: TypeMappings
    interfaces: SimplifiedInterfaces
    logical_ids: LogicalIds

    @classmethod
    def from_settings(cls, settings: DoccacheSettings) -> DoccacheConfig:
        """Build the projection policy.

        Raises:
            InvalidConfigError: a policy section is inconsistent
        """
        try:
            return cls(
                settings=settings,
                type_mappings=TypeMappings.from_specs(settings.type_mappings),
                interfaces=parse_interfaces(settings.custom_interfaces),
                logical_ids=LogicalIds.from_specs(settings.logical_ids),
            )
        except InvalidConfigError:
            raise
        except DoccacheError as e:
            raise InvalidConfigError(f"Invalid projection policy: {e.message}", cause=e) from e


def load_config(path: str | Path) -> DoccacheConfig:
    return DoccacheConfig.from_settings(load_settings(path))


def interface_fields(spec: InterfaceFieldSpec, interface_name: str) -> list[SimplifiedField]:
    """Fields contributed by one configured interface field.

    The first field returned is the one named by the configuration entry.
    """
    if spec.is_id and not codec.is_idable(spec.type):
        raise InvalidConfigError(
            f"id fields can only be of IDable types(checksum256, name, string), found type: "
            f"{spec.type} for field: {spec.name} of interface: {interface_name}"
        )

    if spec.content_group is not None:
        is_object = not codec.is_primitive(spec.type)
        # An object type is referenced through a checksum and its core edge
        content_type = ContentType.CHECKSUM256 if is_object else ContentType(spec.type)
        name = codec.field_name(spec.content_group, spec.name, content_type)
        fields = [
            SimplifiedField.scalar(
                name,
                codec.gql_scalar(content_type),
                codec.index(content_type),
                non_null=spec.is_id,
                is_id=spec.is_id,
            )
        ]
        if is_object:
            fields.append(SimplifiedField.core_edge(codec.core_edge_name(name), codec.type_name(spec.type)))
        return fields

    if codec.is_primitive(spec.type):
        content_type = ContentType(spec.type)
        return [
            SimplifiedField.scalar(
                codec.lower_camel(spec.name),
                codec.gql_scalar(content_type),
                codec.index(content_type),
                non_null=spec.is_id,
                is_id=spec.is_id,
            )
        ]
    return [SimplifiedField.edge(spec.name, codec.type_name(spec.type))]


def parse_interface(spec: InterfaceSpec) -> SimplifiedInterface:
    interface = SimplifiedInterface(name=spec.name)
    for field_spec in spec.fields:
        fields = interface_fields(field_spec, spec.name)
        interface.set_fields(fields)
        if field_spec.signature:
            interface.signature_fields.append(fields[0].name)
    interface.types = {codec.type_name(t) for t in spec.types}
    try:
        interface.validate()
    except DoccacheError as e:
        raise InvalidConfigError(e.message, cause=e) from e
    return interface


def parse_interfaces(specs: list[InterfaceSpec]) -> SimplifiedInterfaces:
    return SimplifiedInterfaces(parse_interface(spec) for spec in specs)


__all__ = [
    "DoccacheConfig",
    "interface_fields",
    "load_config",
    "parse_interface",
    "parse_interfaces",
]
