"""Client for the GraphQL data endpoint: typed get and batched mutations."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any

from doccache.core.errors import GraphQLResponseError, InstanceStoreError, TransportError
from doccache.gql.base_schema import DOC_ID_FIELD, document_interface
from doccache.gql.instance import SimplifiedInstance
from doccache.gql.mutation import Mutation, join_mutations, query_stmt
from doccache.gql.transport import Executor
from doccache.gql.types import SimplifiedType

DOCUMENT_PROJECTION = ("docId", "type", "hash")


class InstanceClient:
    def __init__(self, transport: Executor):
        self.transport = transport
        self._document = document_interface()

    def get(
        self,
        simplified_type: SimplifiedType,
        ids: Sequence[Any],
        projection: Iterable[str] | None = None,
        id_name: str = DOC_ID_FIELD,
    ) -> dict[Any, SimplifiedInstance]:
        """Fetch instances by id, keyed by id value."""
        if not ids:
            return {}
        simplified_type.id_field(id_name)
        if projection is not None:
            projection = [id_name, *projection]
        query_name, stmt = query_stmt(simplified_type, id_name, projection)
        rows = self._query(query_name, stmt, {"ids": list(ids)}, simplified_type.name)
        return {
            row[id_name]: SimplifiedInstance(simplified_type, row)
            for row in rows
        }

    def get_one(
        self,
        simplified_type: SimplifiedType,
        id_value: Any,
        projection: Iterable[str] | None = None,
        id_name: str = DOC_ID_FIELD,
    ) -> SimplifiedInstance | None:
        return self.get(simplified_type, [id_value], projection, id_name).get(id_value)

    def find_documents(self, field_name: str, values: Iterable[str]) -> dict[str, dict[str, Any]]:
        """Look up documents of any type by ``docId`` or ``hash``.

        Returns ``value -> {docId, type, hash}``.
        """
        values = list(dict.fromkeys(values))
        if not values:
            return {}
        query_name, stmt = query_stmt(self._document, field_name, DOCUMENT_PROJECTION, param="values")
        rows = self._query(query_name, stmt, {"values": values}, self._document.name)
        return {row[field_name]: row for row in rows}

    def mutate(self, *mutations: Mutation) -> None:
        """Execute every fragment in a single request."""
        stmt, variables = join_mutations(mutations)
        try:
            self.transport.execute(stmt, variables)
        except TransportError as e:
            raise InstanceStoreError(f"Mutation failed: {e.message}", retryable=True, cause=e) from e
        except GraphQLResponseError as e:
            raise InstanceStoreError(f"Mutation failed: {e.message}", cause=e).with_context(
                statement=stmt
            ) from e

    def _query(
        self,
        query_name: str,
        stmt: str,
        variables: dict[str, Any],
        type_name: str,
    ) -> list[dict[str, Any]]:
        try:
            data = self.transport.execute(stmt, variables)
        except TransportError as e:
            raise InstanceStoreError(
                f"Failed getting: {type_name}: {e.message}", retryable=True, cause=e
            ).with_context(type_name=type_name) from e
        except GraphQLResponseError as e:
            raise InstanceStoreError(f"Failed getting: {type_name}: {e.message}", cause=e).with_context(
                type_name=type_name
            ) from e
        return data.get(query_name) or []


__all__ = ["InstanceClient"]
