"""Chain edge: a named ``(from, to)`` pair between document ids."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from doccache.core.errors import InvalidContentError
from doccache.domain import codec


def _node_id(raw: Any) -> str:
    # Node ids may arrive as JSON numbers, possibly float encoded
    if isinstance(raw, bool):
        raise ValueError(f"invalid node id: {raw!r}")
    if isinstance(raw, float):
        return str(int(raw))
    return str(int(str(raw)))


@dataclass(frozen=True)
class ChainEdge:
    name: str
    from_id: str
    to_id: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChainEdge:
        try:
            return cls(
                name=str(data["edge_name"]),
                from_id=_node_id(data["from_node"]),
                to_id=_node_id(data["to_node"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidContentError(f"Malformed chain edge: {data!r}", cause=e) from e

    @classmethod
    def from_json(cls, raw: str | bytes) -> ChainEdge:
        try:
            data = json.loads(raw)
        except ValueError as e:
            raise InvalidContentError(f"Chain edge is not valid JSON: {e}", cause=e) from e
        if not isinstance(data, dict):
            raise InvalidContentError("Chain edge must be a JSON object")
        return cls.from_dict(data)

    @property
    def doc_edge_name(self) -> str:
        """Field name of this edge on the ``from`` document."""
        return codec.doc_edge_name(self.name)

    def edge_ref(self, doc_id: str) -> dict[str, list[dict[str, str]]]:
        return {self.doc_edge_name: [{"docId": doc_id}]}

    def __str__(self) -> str:
        return f"ChainEdge{{Name: {self.name}, From: {self.from_id}, To: {self.to_id}}}"


__all__ = ["ChainEdge"]
