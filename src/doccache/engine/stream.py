"""Newline delimited JSON delta source.

Replays recorded stream output into a ``DeltaStreamHandler``. One record per
line::

    {"kind": "delta", "table_name": "documents", "operation": "insert",
     "new_data": {...}, "cursor": "c-10", "block_number": 10, "fork_step": "new"}
    {"kind": "heartbeat", "cursor": "c-11", "block_number": 11}

When resuming from a persisted cursor, every record up to and including the
last one carrying that cursor is skipped. Records below ``start_block`` are
skipped as well.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from doccache.core.errors import DoccacheError, InvalidDeltaError
from doccache.core.logging import get_logger
from doccache.engine.handler import DeltaOperation, DeltaStreamHandler, TableDelta

logger = get_logger(__name__)

KIND_DELTA = "delta"
KIND_HEARTBEAT = "heartbeat"


def parse_record(line: str, line_number: int) -> dict[str, Any]:
    try:
        record = json.loads(line)
    except ValueError as e:
        raise InvalidDeltaError(f"Line {line_number} is not valid JSON: {e}", cause=e) from e
    if not isinstance(record, dict):
        raise InvalidDeltaError(f"Line {line_number} is not a JSON object")
    if not isinstance(record.get("cursor"), str):
        raise InvalidDeltaError(f"Line {line_number} has no cursor")
    return record


def to_delta(record: dict[str, Any]) -> TableDelta:
    try:
        operation = DeltaOperation(record.get("operation"))
    except ValueError as e:
        raise InvalidDeltaError(f"Unknown delta operation: {record.get('operation')!r}", cause=e) from e
    table_name = record.get("table_name")
    if not table_name:
        raise InvalidDeltaError("Delta record has no table_name")
    return TableDelta(
        table_name=table_name,
        operation=operation,
        new_data=record.get("new_data"),
        old_data=record.get("old_data"),
        block_number=int(record.get("block_number") or 0),
    )


class JsonLinesDeltaStream:
    def __init__(self, lines: Iterable[str], resume_cursor: str = "", start_block: int = 0):
        self.lines = lines
        self.resume_cursor = resume_cursor
        self.start_block = start_block

    @classmethod
    def from_path(cls, path: str | Path, resume_cursor: str = "", start_block: int = 0) -> JsonLinesDeltaStream:
        try:
            text = Path(path).read_text(encoding="utf-8")
        except OSError as e:
            raise InvalidDeltaError(f"Can't read deltas from: {path}: {e}", cause=e) from e
        return cls(text.splitlines(), resume_cursor, start_block)

    def records(self) -> list[dict[str, Any]]:
        return [
            parse_record(line, number)
            for number, line in enumerate(self.lines, start=1)
            if line.strip()
        ]

    def pending(self) -> list[dict[str, Any]]:
        """Records left to apply after the resume cursor and start block."""
        records = self.records()
        resume_at = 0
        if self.resume_cursor:
            for index, record in enumerate(records):
                if record["cursor"] == self.resume_cursor:
                    resume_at = index + 1
        return [
            record
            for record in records[resume_at:]
            if int(record.get("block_number") or 0) >= self.start_block
        ]

    def run(self, handler: DeltaStreamHandler) -> int:
        """Feed pending records to ``handler``; returns how many were applied."""
        applied = 0
        last_block = None
        try:
            for record in self.pending():
                kind = record.get("kind", KIND_DELTA)
                block_number = int(record.get("block_number") or 0)
                if kind == KIND_HEARTBEAT:
                    handler.on_heartbeat(block_number, record["cursor"])
                elif kind == KIND_DELTA:
                    handler.on_delta(to_delta(record), record["cursor"], record.get("fork_step"))
                else:
                    raise InvalidDeltaError(f"Unknown record kind: {kind!r}")
                applied += 1
                last_block = block_number
        except DoccacheError as e:
            handler.on_error(e)
            raise
        handler.on_complete(last_block)
        logger.info("delta_replay_finished", applied=applied, last_block=last_block)
        return applied


__all__ = ["JsonLinesDeltaStream", "parse_record", "to_delta"]
