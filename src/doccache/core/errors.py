"""
Structured error types for the document cache.

Every failure the projection engine can surface is a typed ``DoccacheError``
that carries a category, an explicit retry flag, structured context (type,
doc id, field, cursor, url) and the chained underlying exception. The delta
handler never swallows these: they propagate to the process entry point,
which logs ``error.to_dict()`` and exits so the supervisor can restart the
process from the last durable cursor.

Manifesto:
    - **Typed Error Hierarchy:** One class per failure the engine reports
    - **Explicit Retry Semantics:** Transport failures are retryable, schema
      and content failures are not
    - **Rich Context:** Errors carry the type/doc/cursor that triggered them
    - **Error Chaining:** The underlying exception is kept as ``cause``

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                       DoccacheError                              │
        │  (category, retryable, context, cause)                          │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  TransientError        ContentError         ValidationError      │
        │  (retryable=True)      (PARSE)              (VALIDATION)         │
        │       │                     │                     │              │
        │  TransportError        InvalidContent       MissingLogicalId     │
        │  SchemaSyncError       InvalidContentValue  MissingEndpoint      │
        │                                             InvalidDelta         │
        │                                                                  │
        │  SchemaError           StoreError           ConfigError          │
        │  (SCHEMA)              (STORE)              (CONFIG)             │
        │       │                     │                     │              │
        │  IncompatibleField     InstanceStoreError   MissingConfig        │
        │  NonNullAddition       GraphQLResponseError InvalidConfig        │
        │  IncompatibleEdgeTarget                                          │
        │  SchemaIncompatible                                              │
        └─────────────────────────────────────────────────────────────────┘

Examples:
    >>> error = MissingLogicalIdError("details_name_n missing")
    >>> error.with_context(type_name="Dho", doc_id="2").context.type_name
    'Dho'
    >>> error.retryable
    False

Tags:
    error-handling, exception-hierarchy, retry-logic, error-context,
    doccache, observability

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    # Infrastructure
    NETWORK = "NETWORK"
    STORE = "STORE"

    # Data
    PARSE = "PARSE"
    VALIDATION = "VALIDATION"
    SCHEMA = "SCHEMA"

    # Configuration
    CONFIG = "CONFIG"

    # Internal
    INTERNAL = "INTERNAL"
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """
    Structured context attached to a DoccacheError.

    Attributes:
        type_name: Induced GraphQL type being processed
        doc_id: Document id (string form of the chain id)
        field: Field name involved in the failure
        cursor: Stream cursor of the delta being applied
        url: Endpoint that was being accessed
        metadata: Additional key-value pairs
    """

    type_name: str | None = None
    doc_id: str | None = None
    field: str | None = None
    cursor: str | None = None
    url: str | None = None

    metadata: dict[str, Any] = dataclasses.field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["type_name", "doc_id", "field", "cursor", "url"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class DoccacheError(Exception):
    """
    Base class for all document cache errors.

    Subclasses set ``default_category`` and ``default_retryable``; both can be
    overridden per instance.

    Example:
        >>> try:
        ...     raise ConnectionError("refused")
        ... except ConnectionError as e:
        ...     error = TransportError("admin unreachable", cause=e)
        >>> error.cause
        ConnectionError('refused')
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> DoccacheError:
        """
        Add context to this error (fluent API).

        Usage:
            raise MissingEndpointError("from node missing").with_context(
                doc_id="31", cursor=cursor
            )
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# TRANSIENT ERRORS (Retryable by restarting from the cursor)
# =============================================================================


class TransientError(DoccacheError):
    """Temporary failure that may succeed on retry."""

    default_category = ErrorCategory.NETWORK
    default_retryable = True


class TransportError(TransientError):
    """HTTP-level failure talking to a GraphQL endpoint."""


class SchemaSyncError(TransientError):
    """The remote schema could not be read, written or confirmed."""


# =============================================================================
# CONTENT ERRORS
# =============================================================================


class ContentError(DoccacheError):
    """A chain document or edge could not be decoded."""

    default_category = ErrorCategory.PARSE
    default_retryable = False


class InvalidContentError(ContentError):
    """Content violates the document encoding (missing group label, type...)."""


class InvalidContentValueError(InvalidContentError):
    """A raw content value could not be projected to its primitive type."""


# =============================================================================
# VALIDATION ERRORS
# =============================================================================


class ValidationError(DoccacheError):
    """Input is well formed but not acceptable."""

    default_category = ErrorCategory.VALIDATION
    default_retryable = False


class MissingLogicalIdError(ValidationError):
    """A configured logical id field is absent on type creation."""


class MissingEndpointError(ValidationError):
    """An edge references a document id that is not in the store."""


class InvalidDeltaError(ValidationError):
    """The upstream stream delivered a delta the engine cannot apply."""


# =============================================================================
# SCHEMA ERRORS
# =============================================================================


class SchemaError(DoccacheError):
    """Schema evolution rule violated."""

    default_category = ErrorCategory.SCHEMA
    default_retryable = False


class IncompatibleFieldError(SchemaError):
    """Updating an existing field would tighten or change it."""


class NonNullAdditionError(IncompatibleFieldError):
    """A non-null field was added to an existing type."""


class IncompatibleEdgeTargetError(IncompatibleFieldError):
    """An edge target can be neither kept nor generalized to Document."""


class SchemaIncompatibleError(SchemaError):
    """The admin endpoint rejected the rendered schema."""


# =============================================================================
# STORE ERRORS
# =============================================================================


class StoreError(DoccacheError):
    """Instance store (data endpoint) failure."""

    default_category = ErrorCategory.STORE
    default_retryable = False


class GraphQLResponseError(StoreError):
    """A GraphQL endpoint answered with an ``errors`` list."""

    def __init__(self, message: str, *, errors: list[dict[str, Any]] | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.errors = errors or []

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.errors:
            result["errors"] = self.errors
        return result


class InstanceStoreError(StoreError):
    """A get/add/update/delete against the data endpoint failed."""


# =============================================================================
# CONFIG ERRORS
# =============================================================================


class ConfigError(DoccacheError):
    """Configuration error."""

    default_category = ErrorCategory.CONFIG
    default_retryable = False


class MissingConfigError(ConfigError):
    """Configuration file not found."""


class InvalidConfigError(ConfigError):
    """Configuration value failed validation."""


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def is_retryable(error: Exception) -> bool:
    """Check if an error is retryable."""
    if isinstance(error, DoccacheError):
        return error.retryable
    return isinstance(error, (ConnectionError, OSError))


def categorize_error(error: Exception) -> ErrorCategory:
    """Get the category of an error."""
    if isinstance(error, DoccacheError):
        return error.category
    if isinstance(error, (ConnectionError, OSError)):
        return ErrorCategory.NETWORK
    if isinstance(error, ValueError):
        return ErrorCategory.VALIDATION
    return ErrorCategory.UNKNOWN


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "DoccacheError",
    # Transient
    "TransientError",
    "TransportError",
    "SchemaSyncError",
    # Content
    "ContentError",
    "InvalidContentError",
    "InvalidContentValueError",
    # Validation
    "ValidationError",
    "MissingLogicalIdError",
    "MissingEndpointError",
    "InvalidDeltaError",
    # Schema
    "SchemaError",
    "IncompatibleFieldError",
    "NonNullAdditionError",
    "IncompatibleEdgeTargetError",
    "SchemaIncompatibleError",
    # Store
    "StoreError",
    "GraphQLResponseError",
    "InstanceStoreError",
    # Config
    "ConfigError",
    "MissingConfigError",
    "InvalidConfigError",
    # Utilities
    "is_retryable",
    "categorize_error",
]
