"""GraphQL layer: simplified schema model, statements, admin and data clients."""

from doccache.gql.field import DOCUMENT_INTERFACE, SimplifiedField
from doccache.gql.instance import SimplifiedInstance
from doccache.gql.interface import SimplifiedInterfaces
from doccache.gql.schema import Schema, SchemaUpdateOp
from doccache.gql.types import SimplifiedInterface, SimplifiedType

__all__ = [
    "DOCUMENT_INTERFACE",
    "Schema",
    "SchemaUpdateOp",
    "SimplifiedField",
    "SimplifiedInstance",
    "SimplifiedInterface",
    "SimplifiedInterfaces",
    "SimplifiedType",
]
