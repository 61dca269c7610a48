"""
Shared pytest fixtures for doccache tests.

This module provides:
- ``FakeDgraph``: an in-memory GraphQL backend serving the admin schema
  endpoint and the query/add/update/delete operations the engine generates
- Chain document factories
- A started ``Doccache`` wired to the fake backend

Usage:
    def test_something(fake_dgraph, chain_doc, doccache_factory):
        cache = doccache_factory()
        cache.store_document(chain_doc(21, "period"), cursor="c1")
        assert fake_dgraph.get("Period", "21")
"""

from __future__ import annotations

import copy
from collections.abc import Callable
from typing import Any

import pytest
from graphql.language import FieldNode, OperationDefinitionNode, parse
from graphql.utilities import value_from_ast_untyped

from doccache.core.errors import GraphQLResponseError, TransportError
from doccache.domain.document import ChainDocument
from doccache.domain.logical_ids import LogicalIds
from doccache.domain.type_mappings import TypeMappings
from doccache.engine.doccache import Doccache
from doccache.gql.admin import SchemaAdmin
from doccache.gql.client import InstanceClient
from doccache.gql.field import DOCUMENT_INTERFACE
from doccache.gql.interface import SimplifiedInterfaces
from doccache.gql.schema import Schema
from doccache.gql.synchronizer import SchemaSynchronizer


# =============================================================================
# Fake GraphQL backend
# =============================================================================


def _fields(query: str) -> list[FieldNode]:
    document = parse(query)
    operation = next(d for d in document.definitions if isinstance(d, OperationDefinitionNode))
    return [s for s in operation.selection_set.selections if isinstance(s, FieldNode)]


def _args(field: FieldNode, variables: dict[str, Any]) -> dict[str, Any]:
    return {a.name.value: value_from_ast_untyped(a.value, variables) for a in field.arguments or ()}


def _filter(filter_arg: dict[str, Any]) -> tuple[str, str, Any]:
    (field_name, condition), = filter_arg.items()
    (op, value), = condition.items()
    return field_name, op, value


class FakeAdminEndpoint:
    def __init__(self, backend: FakeDgraph):
        self.backend = backend
        self.closed = False

    def execute(self, query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        return self.backend.execute_admin(query, variables or {})

    def close(self) -> None:
        self.closed = True


class FakeDataEndpoint:
    def __init__(self, backend: FakeDgraph):
        self.backend = backend
        self.closed = False

    def execute(self, query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        return self.backend.execute_data(query, variables or {})

    def close(self) -> None:
        self.closed = True


class FakeDgraph:
    """In-memory stand-in for the Dgraph GraphQL admin and data endpoints.

    Every data request is applied to a copy of the store and committed only
    when all of its fields succeed, like a single Dgraph GraphQL request.

    Attributes:
        schema_text: Last schema pushed through ``updateGQLSchema``
        store: ``type name -> id -> row``
        schema_lag: Number of schema reads that still serve the previous text
        fail_mutation: Error raised by the next data mutation request
        healthy: False makes the ``health`` query fail at transport level
    """

    def __init__(self) -> None:
        self.schema_text: str | None = None
        self.schema_pushes: list[str] = []
        self.store: dict[str, dict[str, dict[str, Any]]] = {}
        self.schema_lag = 0
        self.fail_mutation: Exception | None = None
        self.reject_schema = False
        self.healthy = True
        self.data_requests: list[tuple[str, dict[str, Any]]] = []
        self._previous_text: str | None = None
        self.admin = FakeAdminEndpoint(self)
        self.data = FakeDataEndpoint(self)

    # ── Admin ────────────────────────────────────────────────────────────

    def execute_admin(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for field in _fields(query):
            name = field.name.value
            if name == "getGQLSchema":
                text = self.schema_text
                if self.schema_lag > 0:
                    self.schema_lag -= 1
                    text = self._previous_text
                result[name] = {"schema": text, "generatedSchema": ""} if text else None
            elif name == "updateGQLSchema":
                if self.reject_schema:
                    raise GraphQLResponseError(
                        "resolving updateGQLSchema failed", errors=[{"message": "schema rejected"}]
                    )
                text = _args(field, variables)["input"]["set"]["schema"]
                Schema.load(text)
                self._previous_text = self.schema_text
                self.schema_text = text
                self.schema_pushes.append(text)
                result[name] = {"gqlSchema": {"id": "0x1"}}
            elif name == "health":
                if not self.healthy:
                    raise TransportError("connection refused")
                result[name] = [{"instance": "alpha", "status": "healthy", "ongoing": [], "indexing": []}]
            else:
                raise GraphQLResponseError(f"Unknown admin field: {name}", errors=[{"message": name}])
        return result

    def schema(self) -> Schema:
        return Schema.load(self.schema_text) if self.schema_text else Schema()

    # ── Data ─────────────────────────────────────────────────────────────

    def execute_data(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        self.data_requests.append((query, copy.deepcopy(variables)))
        fields = _fields(query)
        is_mutation = query.lstrip().startswith("mutation")
        if is_mutation and self.fail_mutation is not None:
            error, self.fail_mutation = self.fail_mutation, None
            raise error

        schema = self.schema()
        store = copy.deepcopy(self.store)
        result: dict[str, Any] = {}
        for field in fields:
            name = field.name.value
            args = _args(field, variables)
            if name.startswith("query"):
                result[name] = self._query(schema, store, name[len("query"):], args, field)
            elif name.startswith("add"):
                result[name] = self._add(schema, store, name[len("add"):], args)
            elif name.startswith("update"):
                result[name] = self._update(schema, store, name[len("update"):], args)
            elif name.startswith("delete"):
                result[name] = self._delete(schema, store, name[len("delete"):], args)
            else:
                raise GraphQLResponseError(f"Unknown field: {name}", errors=[{"message": name}])
        if is_mutation:
            self.store = store
        return result

    def _require_type(self, schema: Schema, type_name: str, allow_interface: bool = False) -> None:
        if schema.has_type(type_name) or (allow_interface and schema.has_interface(type_name)):
            return
        raise GraphQLResponseError(
            f"Unknown type: {type_name}", errors=[{"message": f"Unknown type: {type_name}"}]
        )

    def _check_fields(self, schema: Schema, type_name: str, values: dict[str, Any] | None) -> None:
        simplified_type = schema.get_type(type_name)
        for key in values or {}:
            if not simplified_type.has_field(key):
                raise GraphQLResponseError(
                    f"Field: {key} is not defined on type: {type_name}",
                    errors=[{"message": f"Field {key} is not defined on {type_name}"}],
                )

    @staticmethod
    def _id_name(type_name: str) -> str:
        return "id" if type_name == "Cursor" else "docId"

    def _rows(self, schema: Schema, store: dict, type_name: str) -> list[dict[str, Any]]:
        if type_name == DOCUMENT_INTERFACE or schema.has_interface(type_name):
            return [
                row
                for name, rows in store.items()
                if schema.implements(name, type_name)
                for row in rows.values()
            ]
        return list(store.get(type_name, {}).values())

    def _exists(self, store: dict, doc_id: str) -> bool:
        return any(doc_id in rows for name, rows in store.items() if name != "Cursor")

    def _query(self, schema: Schema, store: dict, type_name: str, args: dict, field: FieldNode) -> list:
        self._require_type(schema, type_name, allow_interface=True)
        filter_field, _, values = _filter(args["filter"])
        rows = [r for r in self._rows(schema, store, type_name) if r.get(filter_field) in values]
        projected = []
        for row in rows:
            item: dict[str, Any] = {}
            for selection in field.selection_set.selections:
                key = selection.name.value
                value = row.get(key)
                if selection.selection_set is not None and value is not None:
                    if isinstance(value, list):
                        value = [v for v in value if self._exists(store, v["docId"])]
                    elif not self._exists(store, value["docId"]):
                        value = None
                item[key] = copy.deepcopy(value)
            projected.append(item)
        return projected

    def _add(self, schema: Schema, store: dict, type_name: str, args: dict) -> dict[str, int]:
        self._require_type(schema, type_name)
        id_name = self._id_name(type_name)
        rows = store.setdefault(type_name, {})
        for item in args["input"]:
            self._check_fields(schema, type_name, item)
            key = item[id_name]
            if key in rows and not args.get("upsert"):
                raise GraphQLResponseError(
                    f"id {key} already exists for type {type_name}", errors=[{"message": "exists"}]
                )
            rows.setdefault(key, {}).update(copy.deepcopy(item))
        return {"numUids": len(args["input"])}

    def _update(self, schema: Schema, store: dict, type_name: str, args: dict) -> dict[str, int]:
        self._require_type(schema, type_name)
        payload = args["input"]
        _, _, key = _filter(payload["filter"])
        self._check_fields(schema, type_name, payload.get("set"))
        self._check_fields(schema, type_name, payload.get("remove"))
        row = store.get(type_name, {}).get(key)
        if row is None:
            return {"numUids": 0}
        for name, value in (payload.get("set") or {}).items():
            if isinstance(value, list):
                current = row.setdefault(name, [])
                current.extend(v for v in value if v not in current)
            else:
                row[name] = copy.deepcopy(value)
        for name, value in (payload.get("remove") or {}).items():
            if isinstance(value, list):
                row[name] = [v for v in row.get(name, []) if v not in value]
            else:
                row.pop(name, None)
        return {"numUids": 1}

    def _delete(self, schema: Schema, store: dict, type_name: str, args: dict) -> dict[str, int]:
        self._require_type(schema, type_name)
        _, _, key = _filter(args["filter"])
        removed = store.get(type_name, {}).pop(key, None)
        return {"numUids": 0 if removed is None else 1}

    # ── Inspection ───────────────────────────────────────────────────────

    def get(self, type_name: str, key: str) -> dict[str, Any] | None:
        return self.store.get(type_name, {}).get(key)

    def cursor(self) -> str | None:
        row = self.get("Cursor", "c1")
        return row["cursor"] if row else None


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def fake_dgraph() -> FakeDgraph:
    return FakeDgraph()


@pytest.fixture
def chain_doc() -> Callable[..., ChainDocument]:
    """
    Factory for chain documents.

        chain_doc(21, "period", {"details": {"number": ("int64", 1)}})

    The ``system`` group carrying the type is added automatically; pass
    ``doc_type=None`` to leave it out.
    """

    def make(
        doc_id: int,
        doc_type: str | None,
        groups: dict[str, dict[str, tuple[str, Any]]] | None = None,
        *,
        hash: str | None = None,
        creator: str = "dao.hypha",
        created_date: str = "2021-01-05T18:00:00.000",
        updated_date: str | None = None,
    ) -> ChainDocument:
        content_groups = []
        all_groups = dict(groups or {})
        if doc_type is not None:
            system = dict(all_groups.get("system", {}))
            system["type"] = ("name", doc_type)
            all_groups["system"] = system
        for label, contents in all_groups.items():
            group = [{"label": "content_group_label", "value": ["string", label]}]
            group.extend(
                {"label": content_label, "value": [content_type, value]}
                for content_label, (content_type, value) in contents.items()
            )
            content_groups.append(group)
        raw = {
            "id": doc_id,
            "hash": hash or f"h{doc_id}",
            "creator": creator,
            "created_date": created_date,
            "content_groups": content_groups,
        }
        if updated_date:
            raw["updated_date"] = updated_date
        return ChainDocument.from_dict(raw)

    return make


@pytest.fixture
def doccache_factory(fake_dgraph: FakeDgraph) -> Callable[..., Doccache]:
    """Factory returning a started ``Doccache`` backed by ``fake_dgraph``."""

    def make(
        interfaces: SimplifiedInterfaces | None = None,
        logical_ids: LogicalIds | None = None,
        type_mappings: TypeMappings | None = None,
    ) -> Doccache:
        interfaces = interfaces or SimplifiedInterfaces()
        logical_ids = logical_ids or LogicalIds()
        synchronizer = SchemaSynchronizer(
            SchemaAdmin(fake_dgraph.admin),
            interfaces,
            id_fields=logical_ids.fields_for,
            attempts=3,
            delay=0,
            sleep=lambda _: None,
        )
        cache = Doccache(
            synchronizer,
            InstanceClient(fake_dgraph.data),
            type_mappings=type_mappings,
            interfaces=interfaces,
            logical_ids=logical_ids,
        )
        cache.start()
        return cache

    return make
