"""Client for the GraphQL admin endpoint (schema read/write, health)."""

from __future__ import annotations

from typing import Any

from doccache.core.errors import (
    GraphQLResponseError,
    SchemaIncompatibleError,
    SchemaSyncError,
    TransportError,
)
from doccache.gql.schema import Schema
from doccache.gql.transport import Executor

GET_SCHEMA = """
{
  getGQLSchema {
    schema
    generatedSchema
  }
}
"""

UPDATE_SCHEMA = """
mutation($schema: String!) {
  updateGQLSchema(input: { set: { schema: $schema } }) {
    gqlSchema { id }
  }
}
"""

HEALTH = """
{
  health {
    instance
    status
    ongoing
    indexing
  }
}
"""


class SchemaAdmin:
    def __init__(self, transport: Executor):
        self.transport = transport

    def get_schema_text(self) -> str | None:
        """Current schema text, or None when no schema has been set yet."""
        try:
            data = self.transport.execute(GET_SCHEMA)
        except (TransportError, GraphQLResponseError) as e:
            raise SchemaSyncError(f"Failed getting current schema: {e.message}", cause=e) from e
        gql_schema = data.get("getGQLSchema")
        if not gql_schema:
            return None
        return gql_schema.get("schema") or None

    def get_current_schema(self) -> Schema | None:
        text = self.get_schema_text()
        if text is None:
            return None
        return Schema.load(text)

    def update_schema(self, schema: Schema) -> None:
        """Push the rendered schema.

        Raises:
            SchemaSyncError: the request could not be delivered
            SchemaIncompatibleError: the endpoint rejected the schema
        """
        try:
            self.transport.execute(UPDATE_SCHEMA, {"schema": schema.render()})
        except TransportError as e:
            raise SchemaSyncError(f"Failed updating schema: {e.message}", cause=e) from e
        except GraphQLResponseError as e:
            raise SchemaIncompatibleError(f"Schema rejected: {e.message}", cause=e) from e

    def health(self) -> list[dict[str, Any]]:
        try:
            data = self.transport.execute(HEALTH)
        except (TransportError, GraphQLResponseError) as e:
            raise SchemaSyncError(f"Failed getting health state: {e.message}", cause=e) from e
        health = data.get("health") or []
        return health if isinstance(health, list) else [health]


__all__ = ["SchemaAdmin"]
