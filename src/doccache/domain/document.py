"""
Content model: chain documents and their parsed, typed projection.

A chain document arrives as JSON::

    {
      "id": 21,
      "hash": "6f3c...",
      "creator": "dao.hypha",
      "created_date": "2021-01-05T18:00:00.000",
      "content_groups": [
        [
          {"label": "content_group_label", "value": ["string", "details"]},
          {"label": "number", "value": ["int64", 1]}
        ],
        [
          {"label": "content_group_label", "value": ["string", "system"]},
          {"label": "type", "value": ["name", "period"]}
        ]
      ]
    }

``ChainDocument.parse`` decodes it once, at the boundary, into a
``ParsedDoc``: the induced type name, one ``SimplifiedField`` per content
item, the values to store and the core edge slots of its checksum fields.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from doccache.core.errors import InvalidContentError
from doccache.domain import codec
from doccache.domain.codec import ContentType
from doccache.gql.base_schema import RESERVED_TYPE_NAMES, document_type
from doccache.gql.field import SimplifiedField
from doccache.gql.instance import SimplifiedInstance
from doccache.gql.types import SimplifiedType

CONTENT_GROUP_LABEL = "content_group_label"
SYSTEM_GROUP = "system"
TYPE_LABEL = "type"


@dataclass(frozen=True)
class ChainContent:
    """One ``(label, [primitive, raw_value])`` content item."""

    label: str
    content_type: ContentType
    raw_value: Any

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChainContent:
        try:
            label = data["label"]
            raw_type, raw_value = data["value"]
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidContentError(f"Malformed content item: {data!r}", cause=e) from e
        return cls(label=str(label), content_type=codec.parse_content_type(raw_type), raw_value=raw_value)

    @property
    def is_checksum(self) -> bool:
        return self.content_type is ContentType.CHECKSUM256

    @property
    def value(self) -> Any:
        return codec.project_value(self.content_type, self.raw_value)


@dataclass(frozen=True)
class ContentGroup:
    """A labelled group; ``contents`` excludes the label marker."""

    label: str
    contents: tuple[ChainContent, ...]

    @classmethod
    def from_list(cls, items: list[dict[str, Any]], position: int = 0) -> ContentGroup:
        label = None
        contents = []
        for item in items:
            content = ChainContent.from_dict(item)
            if content.label == CONTENT_GROUP_LABEL:
                label = str(content.raw_value)
            else:
                contents.append(content)
        if label is None:
            raise InvalidContentError(f"Content group: {position} has no {CONTENT_GROUP_LABEL}")
        return cls(label=label, contents=tuple(contents))


@dataclass(frozen=True)
class CoreEdgeRef:
    """A checksum field and the object field it resolves into."""

    checksum_field: str
    edge_field: str
    hash: str


@dataclass
class ParsedDoc:
    type_name: str
    fields: dict[str, SimplifiedField]
    values: dict[str, Any]
    core_edges: list[CoreEdgeRef] = field(default_factory=list)

    @property
    def doc_id(self) -> str:
        return self.values["docId"]

    @property
    def checksum_fields(self) -> list[str]:
        return [ref.checksum_field for ref in self.core_edges]

    def to_type(self) -> SimplifiedType:
        """Induced type: Document base fields plus one field per content item."""
        simplified_type = document_type(self.type_name)
        simplified_type.set_fields(self.fields.values())
        return simplified_type

    def to_instance(self, simplified_type: SimplifiedType) -> SimplifiedInstance:
        return SimplifiedInstance(simplified_type, dict(self.values))


@dataclass
class ChainDocument:
    """Immutable on-chain document as delivered by the doc table."""

    id: int
    hash: str
    creator: str
    created_date: str
    content_groups: list[ContentGroup] = field(default_factory=list)
    updated_date: str | None = None
    contract: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChainDocument:
        try:
            doc_id = int(data["id"])
            groups = data.get("content_groups") or []
            content_groups = [ContentGroup.from_list(g, i) for i, g in enumerate(groups)]
            return cls(
                id=doc_id,
                hash=str(data.get("hash") or ""),
                creator=str(data.get("creator") or ""),
                created_date=str(data["created_date"]),
                content_groups=content_groups,
                updated_date=data.get("updated_date") or None,
                contract=data.get("contract") or None,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidContentError(f"Malformed chain document: {e}", cause=e) from e

    @classmethod
    def from_json(cls, raw: str | bytes) -> ChainDocument:
        try:
            data = json.loads(raw)
        except ValueError as e:
            raise InvalidContentError(f"Chain document is not valid JSON: {e}", cause=e) from e
        if not isinstance(data, dict):
            raise InvalidContentError("Chain document must be a JSON object")
        return cls.from_dict(data)

    @property
    def doc_id(self) -> str:
        return str(self.id)

    def system_type(self) -> str | None:
        for group in self.content_groups:
            if group.label != SYSTEM_GROUP:
                continue
            for content in group.contents:
                if content.label == TYPE_LABEL:
                    return str(content.raw_value)
        return None

    def parse(self, type_mappings: Any = None) -> ParsedDoc:
        """Decode into the induced type and instance values.

        The type is taken from the first matching ``type_mappings`` entry,
        else from the ``system.type`` item.

        Raises:
            InvalidContentError: no type can be determined
            InvalidContentValueError: a value does not fit its primitive type
        """
        created_date = codec.format_datetime(self.created_date)
        values: dict[str, Any] = {
            "docId": self.doc_id,
            "docId_i": self.id,
            "hash": self.hash,
            "creator": self.creator,
            "createdDate": created_date,
            "updatedDate": codec.format_datetime(self.updated_date) if self.updated_date else created_date,
        }
        if self.contract:
            values["contract"] = self.contract

        fields: dict[str, SimplifiedField] = {}
        core_edges: list[CoreEdgeRef] = []
        for group in self.content_groups:
            for content in group.contents:
                if group.label == SYSTEM_GROUP and content.label == TYPE_LABEL:
                    continue
                name = codec.field_name(group.label, content.label, content.content_type)
                try:
                    values[name] = content.value
                except InvalidContentError as e:
                    e.with_context(doc_id=self.doc_id, field=name)
                    raise
                fields[name] = SimplifiedField.scalar(
                    name,
                    codec.gql_scalar(content.content_type),
                    codec.index(content.content_type),
                )
                if content.is_checksum:
                    core_edges.append(CoreEdgeRef(name, codec.core_edge_name(name), values[name]))

        raw_type = None
        if type_mappings is not None:
            raw_type = type_mappings.match(fields)
        if raw_type is None:
            raw_type = self.system_type()
        if not raw_type:
            raise InvalidContentError(
                f"Document with ID: {self.id} does not have a type, and none could be deduced"
            ).with_context(doc_id=self.doc_id)

        name = codec.type_name(raw_type)
        if not name or name in RESERVED_TYPE_NAMES:
            raise InvalidContentError(
                f"Document with ID: {self.id} has type: {raw_type!r}, which is not a valid document type name"
            ).with_context(doc_id=self.doc_id, type_name=name or None)
        values["type"] = name
        return ParsedDoc(type_name=name, fields=fields, values=values, core_edges=core_edges)


__all__ = [
    "CONTENT_GROUP_LABEL",
    "ChainContent",
    "ChainDocument",
    "ContentGroup",
    "CoreEdgeRef",
    "ParsedDoc",
]
