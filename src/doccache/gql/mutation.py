"""GraphQL statements generated per simplified type.

Each builder returns a ``Mutation`` fragment: its variable declarations, its
selection and its variable values. Variable names are suffixed with the type
name (``$inputPeriod``, ``$setDho``) so that several fragments, e.g. a
document update and the cursor upsert, can be joined into one request and
therefore commit atomically.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from doccache.gql.types import SimplifiedBaseType, SimplifiedType


@dataclass
class Mutation:
    param_stmt: str
    mutation_stmt: str
    params: dict[str, Any] = field(default_factory=dict)

    @property
    def has_params(self) -> bool:
        return bool(self.params)


def join_mutations(mutations: Sequence[Mutation]) -> tuple[str, dict[str, Any]]:
    """Combine fragments into a single mutation request."""
    param_stmts = [m.param_stmt for m in mutations if m.has_params]
    statements = "\n  ".join(m.mutation_stmt for m in mutations)
    variables: dict[str, Any] = {}
    for mutation in mutations:
        variables.update(mutation.params)
    if param_stmts:
        return f"mutation({', '.join(param_stmts)}) {{\n  {statements}\n}}", variables
    return f"mutation {{\n  {statements}\n}}", variables


def add_mutation(simplified_type: SimplifiedType, values: dict[str, Any], upsert: bool) -> Mutation:
    input_param = f"input{simplified_type.name}"
    upsert_param = f"upsert{simplified_type.name}"
    return Mutation(
        param_stmt=f"${input_param}: [Add{simplified_type.name}Input!]!, ${upsert_param}: Boolean",
        mutation_stmt=(
            f"add{simplified_type.name}(input: ${input_param}, upsert: ${upsert_param}){{numUids}}"
        ),
        params={input_param: [values], upsert_param: upsert},
    )


def update_mutation(
    simplified_type: SimplifiedType,
    id_name: str,
    id_value: Any,
    set_values: dict[str, Any] | None,
    remove_values: dict[str, Any] | None,
) -> Mutation:
    id_field = simplified_type.id_field(id_name)
    id_param = f"id{simplified_type.name}"
    set_param = f"set{simplified_type.name}"
    remove_param = f"remove{simplified_type.name}"
    patch_type = f"{simplified_type.name}Patch"
    return Mutation(
        param_stmt=(
            f"${id_param}: {id_field.type}!, ${set_param}: {patch_type}, "
            f"${remove_param}: {patch_type}"
        ),
        mutation_stmt=(
            f"update{simplified_type.name}(input: {{ filter: {{ {_filter(id_name, 'eq', id_param)} }}, "
            f"set: ${set_param}, remove: ${remove_param} }}){{numUids}}"
        ),
        params={
            id_param: id_value,
            set_param: set_values or None,
            remove_param: remove_values or None,
        },
    )


def delete_mutation(simplified_type: SimplifiedType, id_name: str, id_value: Any) -> Mutation:
    id_field = simplified_type.id_field(id_name)
    id_param = f"id{simplified_type.name}"
    return Mutation(
        param_stmt=f"${id_param}: {id_field.type}!",
        mutation_stmt=(
            f"delete{simplified_type.name}(filter: {{ {_filter(id_name, 'eq', id_param)} }}){{numUids}}"
        ),
        params={id_param: id_value},
    )


def query_stmt(
    simplified_type: SimplifiedBaseType,
    filter_field: str,
    projection: Iterable[str] | None = None,
    param: str = "ids",
) -> tuple[str, str]:
    """Query instances whose ``filter_field`` is in ``$<param>``.

    Returns ``(query_name, statement)``. Object fields are selected as
    ``{docId}`` references.
    """
    filter_def = simplified_type.fields.get(filter_field)
    filter_type = filter_def.type if filter_def is not None else "String"
    query_name = f"query{simplified_type.name}"
    if projection is None:
        selected = list(simplified_type.fields.values())
    else:
        selected = [simplified_type.fields[n] for n in dict.fromkeys(projection) if n in simplified_type.fields]
    selection = "\n    ".join(f"{f.name}{{docId}}" if f.is_object else f.name for f in selected)
    stmt = (
        f"query(${param}: [{filter_type}!]!) {{\n"
        f"  {query_name}(filter: {{ {_filter(filter_field, 'in', param)} }}) {{\n"
        f"    {selection}\n"
        f"  }}\n"
        f"}}"
    )
    return query_name, stmt


def _filter(field_name: str, op: str, param: str) -> str:
    return f"{field_name}: {{ {op}: ${param} }}"


__all__ = [
    "Mutation",
    "add_mutation",
    "delete_mutation",
    "join_mutations",
    "query_stmt",
    "update_mutation",
]
