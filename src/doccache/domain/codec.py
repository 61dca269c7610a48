"""
Name & type codec: chain labels and primitive types to GraphQL names and types.

Every content item of a chain document is a ``(label, [primitive, raw])``
pair inside a labelled content group. The codec turns that into an induced
field: a name built from the group label, the content label and a suffix
naming the primitive, a GraphQL scalar and a search index.

Architecture:
    ::

        ┌─────────────┬──────────┬────────┬────────┐
        │ primitive   │ scalar   │ index  │ suffix │
        ├─────────────┼──────────┼────────┼────────┤
        │ asset       │ String   │ term   │ a      │
        │ checksum256 │ String   │ exact  │ c      │
        │ int64       │ Int64    │ int64  │ i      │
        │ name        │ String   │ exact  │ n      │
        │ time_point  │ DateTime │ hour   │ t      │
        │ string      │ String   │ regexp │ s      │
        └─────────────┴──────────┴────────┴────────┘

        ("details", "start_period", checksum256) -> details_startPeriod_c
        core edge of details_startPeriod_c       -> details_startPeriod_c_edge
        "assignment.payout"                      -> AssignmentPayout

Examples:
    >>> field_name("details", "start_period", ContentType.CHECKSUM256)
    'details_startPeriod_c'
    >>> type_name("vote.tally")
    'VoteTally'
    >>> project_value(ContentType.INT64, "1e3")
    1000

Tags:
    codec, naming, graphql, schema-induction, doccache

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from doccache.core.errors import InvalidContentError, InvalidContentValueError
from doccache.gql.field import GQL_DATETIME, GQL_INT64, GQL_STRING

CORE_EDGE_SUFFIX = "edge"

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1

_ZONE_SUFFIX = re.compile(r"(Z|[+-]\d{2}(:?\d{2})?)$", re.IGNORECASE)


class ContentType(str, Enum):
    """Closed set of on-chain primitive content types."""

    ASSET = "asset"
    CHECKSUM256 = "checksum256"
    INT64 = "int64"
    NAME = "name"
    TIME_POINT = "time_point"
    STRING = "string"


@dataclass(frozen=True)
class ContentTypeInfo:
    scalar: str
    index: str
    suffix: str


CONTENT_TYPES: dict[ContentType, ContentTypeInfo] = {
    ContentType.ASSET: ContentTypeInfo(GQL_STRING, "term", "a"),
    ContentType.CHECKSUM256: ContentTypeInfo(GQL_STRING, "exact", "c"),
    ContentType.INT64: ContentTypeInfo(GQL_INT64, "int64", "i"),
    ContentType.NAME: ContentTypeInfo(GQL_STRING, "exact", "n"),
    ContentType.TIME_POINT: ContentTypeInfo(GQL_DATETIME, "hour", "t"),
    ContentType.STRING: ContentTypeInfo(GQL_STRING, "regexp", "s"),
}

IDABLE_TYPES = frozenset({ContentType.CHECKSUM256, ContentType.NAME, ContentType.STRING})


# =============================================================================
# Case conversion
# =============================================================================


_SEPARATORS = frozenset("_.- ")


def _camel(value: str, upper_first: bool) -> str:
    # Separators start a new word, a letter after a digit does too, anything
    # else outside [A-Za-z0-9] is dropped.
    out: list[str] = []
    cap_next = False
    for ch in value.strip():
        if ch.isascii() and ch.isalpha():
            if not out:
                ch = ch.upper() if upper_first else ch.lower()
            elif cap_next:
                ch = ch.upper()
            out.append(ch)
            cap_next = False
        elif ch.isascii() and ch.isdigit():
            out.append(ch)
            cap_next = True
        else:
            cap_next = ch in _SEPARATORS or ch.isspace()
    return "".join(out)


def pascal_case(value: str) -> str:
    """``start_period`` -> ``StartPeriod``; existing capitals are kept."""
    return _camel(value, upper_first=True)


def lower_camel(value: str) -> str:
    """``start_period`` -> ``startPeriod``."""
    return _camel(value, upper_first=False)


# =============================================================================
# Primitive types
# =============================================================================


def parse_content_type(raw: Any) -> ContentType:
    try:
        return ContentType(raw)
    except ValueError as e:
        raise InvalidContentError(f"Unknown content type: {raw!r}", cause=e) from e


def is_primitive(raw: str) -> bool:
    return raw in ContentType._value2member_map_


def is_idable(raw: str) -> bool:
    return is_primitive(raw) and ContentType(raw) in IDABLE_TYPES


def gql_scalar(content_type: ContentType) -> str:
    return CONTENT_TYPES[content_type].scalar


def index(content_type: ContentType) -> str:
    return CONTENT_TYPES[content_type].index


def suffix(content_type: ContentType) -> str:
    return CONTENT_TYPES[content_type].suffix


# =============================================================================
# Names
# =============================================================================


def field_prefix(group_label: str) -> str:
    return lower_camel(group_label)


def field_name(group_label: str, content_label: str, content_type: ContentType) -> str:
    return f"{field_prefix(group_label)}_{lower_camel(content_label)}_{suffix(content_type)}"


def untyped_field_name(name: str) -> str:
    """Drop the primitive suffix: ``details_title_s`` -> ``details_title``."""
    head, sep, _ = name.rpartition("_")
    return head if sep and head else name


def type_name(raw_type: str) -> str:
    return pascal_case(raw_type.replace(".", "_"))


def core_edge_name(checksum_field: str) -> str:
    return f"{checksum_field}_{CORE_EDGE_SUFFIX}"


def doc_edge_name(chain_edge_name: str) -> str:
    """Field name of a chain edge on its ``from`` document."""
    return lower_camel(chain_edge_name.replace(".", "_"))


# =============================================================================
# Value projectors
# =============================================================================


def _project_int64(raw: Any) -> int:
    if isinstance(raw, bool):
        raise InvalidContentValueError(f"Invalid int64 value: {raw!r}")
    if isinstance(raw, int):
        value = raw
    else:
        text = str(raw).strip()
        try:
            value = int(text)
        except ValueError:
            # Scientific notation such as "1e3"
            try:
                value = int(float(text))
            except (ValueError, OverflowError) as e:
                raise InvalidContentValueError(f"Invalid int64 value: {raw!r}", cause=e) from e
    if not INT64_MIN <= value <= INT64_MAX:
        raise InvalidContentValueError(f"int64 value out of range: {raw!r}")
    return value


def format_datetime(raw: Any) -> str:
    """Append ``Z`` to timestamps carrying no zone designator."""
    value = str(raw).strip()
    if not value:
        raise InvalidContentValueError("Empty time_point value")
    time_part = value.partition("T")[2]
    if time_part and _ZONE_SUFFIX.search(time_part):
        return value
    return f"{value}Z"


def _project_string(raw: Any) -> str:
    return str(raw)


_PROJECTORS: dict[ContentType, Callable[[Any], Any]] = {
    ContentType.ASSET: _project_string,
    ContentType.CHECKSUM256: _project_string,
    ContentType.INT64: _project_int64,
    ContentType.NAME: _project_string,
    ContentType.TIME_POINT: format_datetime,
    ContentType.STRING: _project_string,
}


def project_value(content_type: ContentType, raw: Any) -> Any:
    """Convert a raw chain value into the value stored for its scalar."""
    return _PROJECTORS[content_type](raw)


__all__ = [
    "CONTENT_TYPES",
    "CORE_EDGE_SUFFIX",
    "ContentType",
    "ContentTypeInfo",
    "IDABLE_TYPES",
    "core_edge_name",
    "doc_edge_name",
    "field_name",
    "field_prefix",
    "format_datetime",
    "gql_scalar",
    "index",
    "is_idable",
    "is_primitive",
    "lower_camel",
    "parse_content_type",
    "pascal_case",
    "project_value",
    "suffix",
    "type_name",
    "untyped_field_name",
]
