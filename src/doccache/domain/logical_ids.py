"""Logical ids: configured content fields promoted to primary keys."""

from __future__ import annotations

from collections.abc import Iterable

from doccache.core.errors import InvalidConfigError, MissingLogicalIdError
from doccache.core.settings import LogicalIdSpec
from doccache.domain import codec
from doccache.gql.field import SimplifiedField
from doccache.gql.types import SimplifiedBaseType


def logical_id_field(content_group: str, name: str, raw_type: str) -> SimplifiedField:
    if not codec.is_idable(raw_type):
        raise InvalidConfigError(
            f"id fields can only be of IDable types(checksum256, name, string), "
            f"found type: {raw_type} for field: {name}"
        )
    content_type = codec.parse_content_type(raw_type)
    return SimplifiedField.scalar(
        codec.field_name(content_group, name, content_type),
        codec.gql_scalar(content_type),
        codec.index(content_type),
        non_null=True,
        is_id=True,
    )


class LogicalIds:
    """``type name -> id fields``, keyed by the final induced type name."""

    def __init__(self, ids: dict[str, list[SimplifiedField]] | None = None):
        self._ids: dict[str, list[SimplifiedField]] = ids or {}

    @classmethod
    def from_specs(cls, specs: Iterable[LogicalIdSpec]) -> LogicalIds:
        logical_ids = cls()
        for spec in specs:
            type_name = codec.type_name(spec.type)
            try:
                fields = [logical_id_field(i.content_group, i.name, i.type) for i in spec.ids]
            except InvalidConfigError as e:
                e.with_context(type_name=type_name)
                raise
            logical_ids.set(type_name, fields)
        return logical_ids

    def set(self, type_name: str, fields: list[SimplifiedField]) -> None:
        self._ids[type_name] = fields

    def names(self, type_name: str) -> list[str]:
        return [f.name for f in self._ids.get(type_name, [])]

    def fields_for(self, type_name: str) -> list[SimplifiedField]:
        return list(self._ids.get(type_name, []))

    def configure(self, simplified_type: SimplifiedBaseType) -> None:
        """Mark the configured id fields of a new type as non-null ids.

        Raises:
            MissingLogicalIdError: an id field is not present on the type
        """
        for id_field in self._ids.get(simplified_type.name, []):
            current = simplified_type.get_field(id_field.name)
            if current is None:
                raise MissingLogicalIdError(
                    f"failed configuring logical ids, type: {simplified_type.name} "
                    f"does not have logical id field: {id_field.name}"
                ).with_context(type_name=simplified_type.name, field=id_field.name)
            simplified_type.set_field(current.as_id())

    def __contains__(self, type_name: object) -> bool:
        return type_name in self._ids

    def __len__(self) -> int:
        return len(self._ids)


__all__ = ["LogicalIds", "logical_id_field"]
