"""Core engine and the delta handling around it."""

from doccache.engine.doccache import Doccache
from doccache.engine.handler import DeltaHandler, DeltaOperation, TableDelta

__all__ = ["DeltaHandler", "DeltaOperation", "Doccache", "TableDelta"]
