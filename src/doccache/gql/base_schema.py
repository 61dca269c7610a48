"""Definitions every document cache schema starts with.

- ``Document``: interface implemented by every induced type
- ``Cursor``: singleton type recording the upstream stream position
"""

from __future__ import annotations

from doccache.gql.field import (
    DOCUMENT_INTERFACE,
    GQL_DATETIME,
    GQL_INT64,
    GQL_STRING,
    SimplifiedField,
)
from doccache.gql.types import SimplifiedInterface, SimplifiedType

CURSOR_TYPE = "Cursor"
CURSOR_ID = "c1"

# Names induced document types may not take
RESERVED_TYPE_NAMES = frozenset({CURSOR_TYPE, DOCUMENT_INTERFACE})

DOC_ID_FIELD = "docId"
CURSOR_ID_FIELD = "id"


def document_fields() -> list[SimplifiedField]:
    """Base fields contributed by the Document interface."""
    return [
        SimplifiedField.scalar(DOC_ID_FIELD, GQL_STRING, "exact", non_null=True, is_id=True),
        SimplifiedField.scalar("docId_i", GQL_INT64, "int64", non_null=True),
        SimplifiedField.scalar("hash", GQL_STRING, "exact", non_null=True),
        SimplifiedField.scalar("type", GQL_STRING, "exact", non_null=True),
        SimplifiedField.scalar("creator", GQL_STRING, "exact", non_null=True),
        SimplifiedField.scalar("createdDate", GQL_DATETIME, "hour", non_null=True),
        SimplifiedField.scalar("updatedDate", GQL_DATETIME, "hour"),
        SimplifiedField.scalar("contract", GQL_STRING, "exact"),
    ]


def document_interface() -> SimplifiedInterface:
    fields = document_fields()
    return SimplifiedInterface(
        name=DOCUMENT_INTERFACE,
        fields={f.name: f for f in fields},
        with_subscription=True,
    )


def cursor_type() -> SimplifiedType:
    fields = [
        SimplifiedField.scalar(CURSOR_ID_FIELD, GQL_STRING, "exact", non_null=True, is_id=True),
        SimplifiedField.scalar("cursor", GQL_STRING, non_null=True),
    ]
    return SimplifiedType(
        name=CURSOR_TYPE,
        fields={f.name: f for f in fields},
        with_subscription=False,
    )


def document_type(name: str) -> SimplifiedType:
    """An empty induced type: only the Document base fields."""
    interface = document_interface()
    return SimplifiedType(
        name=name,
        fields=dict(interface.fields),
        interfaces=[DOCUMENT_INTERFACE],
    )


__all__ = [
    "CURSOR_ID",
    "CURSOR_ID_FIELD",
    "CURSOR_TYPE",
    "DOC_ID_FIELD",
    "RESERVED_TYPE_NAMES",
    "cursor_type",
    "document_fields",
    "document_interface",
    "document_type",
]
