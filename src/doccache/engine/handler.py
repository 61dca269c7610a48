"""Delta handler: routes upstream table deltas to the engine.

============  ===============  =========================================
table         operation        action
============  ===============  =========================================
documents     insert, update   ``store_document(new_data)``
documents     remove           ``delete_document(old_data)``
edges         insert           ``mutate_edge(new_data, delete=False)``
edges         remove           ``mutate_edge(old_data, delete=True)``
edges         update           ``InvalidDeltaError``
other         any              ``update_cursor``
heartbeat                      ``update_cursor``
============  ===============  =========================================

Deltas are applied one at a time; errors propagate to the caller.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from doccache.core.errors import InvalidDeltaError
from doccache.core.logging import LogContext, get_logger
from doccache.domain.document import ChainDocument
from doccache.domain.edge import ChainEdge
from doccache.engine.doccache import Doccache
from doccache.observability.metrics import Metrics

logger = get_logger(__name__)


class DeltaOperation(str, Enum):
    INSERT = "insert"
    UPDATE = "update"
    REMOVE = "remove"


@dataclass
class TableDelta:
    """One row change on a contract table."""

    table_name: str
    operation: DeltaOperation
    new_data: dict[str, Any] | None = None
    old_data: dict[str, Any] | None = None
    block_number: int = 0

    def data(self) -> dict[str, Any]:
        """Row image the operation applies: old data for removes."""
        data = self.old_data if self.operation is DeltaOperation.REMOVE else self.new_data
        if data is None:
            side = "old" if self.operation is DeltaOperation.REMOVE else "new"
            raise InvalidDeltaError(
                f"{self.operation.value} delta on table: {self.table_name} has no {side} data"
            )
        return data


class DeltaStreamHandler(Protocol):
    def on_delta(self, delta: TableDelta, cursor: str, fork_step: str | None = None) -> None: ...

    def on_heartbeat(self, block_number: int, cursor: str) -> None: ...

    def on_error(self, error: Exception) -> None: ...

    def on_complete(self, last_block: int | None) -> None: ...


class DeltaHandler:
    """``DeltaStreamHandler`` applying deltas through a ``Doccache``."""

    def __init__(
        self,
        doccache: Doccache,
        doc_table: str = "documents",
        edge_table: str = "edges",
        metrics: Metrics | None = None,
    ):
        self.doccache = doccache
        self.doc_table = doc_table
        self.edge_table = edge_table
        self.metrics = metrics or Metrics()
        self.cursor: str | None = None

    def on_delta(self, delta: TableDelta, cursor: str, fork_step: str | None = None) -> None:
        with LogContext(cursor=cursor, block_number=delta.block_number):
            logger.debug(
                "delta_received",
                table=delta.table_name,
                operation=delta.operation.value,
                fork_step=fork_step,
            )
            if delta.table_name == self.doc_table:
                self._on_document(delta, cursor)
            elif delta.table_name == self.edge_table:
                self._on_edge(delta, cursor)
            else:
                self.doccache.update_cursor(cursor)
        self.metrics.block_number.set(delta.block_number)
        self.cursor = cursor

    def on_heartbeat(self, block_number: int, cursor: str) -> None:
        self.doccache.update_cursor(cursor)
        self.metrics.block_number.set(block_number)
        self.cursor = cursor

    def on_error(self, error: Exception) -> None:
        logger.error("delta_stream_error", error=str(error), error_type=type(error).__name__)

    def on_complete(self, last_block: int | None) -> None:
        logger.info("delta_stream_complete", last_block=last_block, cursor=self.cursor)

    def _on_document(self, delta: TableDelta, cursor: str) -> None:
        chain_doc = ChainDocument.from_dict(delta.data())
        if delta.operation is DeltaOperation.REMOVE:
            self.doccache.delete_document(chain_doc, cursor)
            self.metrics.deleted_docs.inc()
        else:
            self.doccache.store_document(chain_doc, cursor)
            self.metrics.created_docs.inc()

    def _on_edge(self, delta: TableDelta, cursor: str) -> None:
        if delta.operation is DeltaOperation.UPDATE:
            raise InvalidDeltaError(f"Edge updating is not handled: {delta}").with_context(cursor=cursor)
        delete_op = delta.operation is DeltaOperation.REMOVE
        self.doccache.mutate_edge(ChainEdge.from_dict(delta.data()), delete_op, cursor)
        if delete_op:
            self.metrics.deleted_edges.inc()
        else:
            self.metrics.created_edges.inc()


__all__ = ["DeltaHandler", "DeltaOperation", "DeltaStreamHandler", "TableDelta"]
