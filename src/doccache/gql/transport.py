"""HTTP transport for GraphQL endpoints.

One ``GraphQLTransport`` per endpoint (``/admin`` and ``/graphql``). Requests
are plain ``POST {"query", "variables"}``; there is no retry loop here, a
failed request surfaces as an error and the process restarts from the
last durable cursor.
"""

from __future__ import annotations

from typing import Any, Protocol

import httpx

from doccache.core.errors import GraphQLResponseError, TransportError
from doccache.core.logging import get_logger

logger = get_logger(__name__)


class Executor(Protocol):
    """Anything that can run a GraphQL request and return its data."""

    def execute(self, query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]: ...


class GraphQLTransport:
    """Execute GraphQL requests against a single endpoint."""

    TIMEOUT = 30.0

    def __init__(
        self,
        url: str,
        *,
        timeout: float | None = None,
        client: httpx.Client | None = None,
    ):
        self.url = url
        self._client = client or httpx.Client(timeout=timeout or self.TIMEOUT)

    def execute(self, query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        """Run ``query`` and return its ``data`` member.

        Raises:
            TransportError: connection failure, timeout or non 2xx status
            GraphQLResponseError: the endpoint answered with ``errors``
        """
        payload: dict[str, Any] = {"query": query}
        if variables:
            payload["variables"] = variables

        logger.debug("graphql_request", url=self.url, query=query)

        try:
            response = self._client.post(self.url, json=payload)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPError as e:
            raise TransportError(f"Request to {self.url} failed: {e}", cause=e).with_context(
                url=self.url
            ) from e
        except ValueError as e:
            raise TransportError(f"Invalid JSON response from {self.url}", cause=e).with_context(
                url=self.url
            ) from e

        errors = body.get("errors")
        if errors:
            messages = "; ".join(str(err.get("message", err)) for err in errors)
            raise GraphQLResponseError(f"GraphQL errors from {self.url}: {messages}", errors=errors).with_context(
                url=self.url
            )
        return body.get("data") or {}

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> GraphQLTransport:
        return self

    def __exit__(self, *args) -> None:
        self.close()


__all__ = ["Executor", "GraphQLTransport"]
