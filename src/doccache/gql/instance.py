"""Values of one instance of a simplified type."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from doccache.gql.mutation import Mutation, add_mutation, delete_mutation, update_mutation
from doccache.gql.types import SimplifiedType


@dataclass
class SimplifiedInstance:
    simplified_type: SimplifiedType
    values: dict[str, Any] = field(default_factory=dict)

    def get_value(self, name: str) -> Any:
        return self.values.get(name)

    def set_value(self, name: str, value: Any) -> None:
        self.values[name] = value

    def id_value(self, id_name: str) -> Any:
        self.simplified_type.id_field(id_name)
        if id_name not in self.values:
            raise KeyError(f"No id value: {id_name} set for instance of type: {self.simplified_type.name}")
        return self.values[id_name]

    def update_values(self) -> dict[str, Any]:
        """Values to ``set`` on update: everything non-null except id fields."""
        update = {}
        for name, value in self.values.items():
            if value is None:
                continue
            current = self.simplified_type.get_field(name)
            if current is not None and current.is_id:
                continue
            update[name] = value
        return update

    def remove_values(self, old: SimplifiedInstance) -> dict[str, Any]:
        """Values on ``old`` that this instance no longer carries.

        Array edges are maintained by edge deltas and never removed here.
        """
        remove = {}
        for name, value in old.values.items():
            if value is None or self.values.get(name) is not None:
                continue
            old_field = old.simplified_type.get_field(name)
            if old_field is None or old_field.is_edge or old_field.is_id:
                continue
            remove[name] = value
        return remove

    def add_mutation(self, upsert: bool = True) -> Mutation:
        values = {k: v for k, v in self.values.items() if v is not None}
        return add_mutation(self.simplified_type, values, upsert)

    def update_mutation(self, id_name: str, old: SimplifiedInstance | None = None) -> Mutation:
        remove = self.remove_values(old) if old is not None else {}
        return update_mutation(
            self.simplified_type,
            id_name,
            self.id_value(id_name),
            self.update_values(),
            remove,
        )

    def delete_mutation(self, id_name: str) -> Mutation:
        return delete_mutation(self.simplified_type, id_name, self.id_value(id_name))


__all__ = ["SimplifiedInstance"]
