"""Keeps the in-memory schema and the remote admin schema in lock-step.

Every mutation of the local model that reports a change is followed by a
push of the full rendered schema and a bounded read-back that confirms the
endpoint serves every local type and field before any instance is written
against them.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable

from doccache.core.errors import SchemaSyncError
from doccache.core.logging import get_logger
from doccache.gql.admin import SchemaAdmin
from doccache.gql.base_schema import CURSOR_TYPE, cursor_type, document_interface, document_type
from doccache.gql.field import DOCUMENT_INTERFACE, SimplifiedField
from doccache.gql.interface import SimplifiedInterfaces
from doccache.gql.schema import Schema, SchemaUpdateOp
from doccache.gql.types import SimplifiedInterface, SimplifiedType

logger = get_logger(__name__)

IdFields = Callable[[str], Iterable[SimplifiedField]]


class SchemaSynchronizer:
    """Owns the writer's ``Schema`` and pushes it when it changes."""

    def __init__(
        self,
        admin: SchemaAdmin,
        interfaces: SimplifiedInterfaces | None = None,
        *,
        id_fields: IdFields | None = None,
        attempts: int = 10,
        delay: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.admin = admin
        self.interfaces = interfaces or SimplifiedInterfaces()
        self.id_fields = id_fields
        self.attempts = attempts
        self.delay = delay
        self._sleep = sleep
        self._schema: Schema | None = None

    @property
    def schema(self) -> Schema:
        if self._schema is None:
            raise SchemaSyncError("Schema synchronizer has not been started")
        return self._schema

    def start(self) -> Schema:
        """Load the remote schema, or initialize it, and add configured interfaces."""
        remote = self.admin.get_current_schema()
        if remote is None:
            logger.info("schema_initializing")
            self._schema = Schema.initial()
            changed = True
        else:
            self._schema = remote
            changed = self._ensure_base()

        for interface in self.interfaces:
            changed = self._ensure_interface(interface) or changed
        for interface in self.interfaces:
            changed = self._ensure_placeholders(interface) or changed

        if changed:
            self.push()
        logger.info("schema_ready", types=len(self._schema.types), interfaces=len(self._schema.interfaces))
        return self._schema

    def update_type(self, new_type: SimplifiedType) -> SchemaUpdateOp:
        op = self.schema.update_type(new_type)
        if op is not SchemaUpdateOp.NONE:
            self.push()
        return op

    def add_edge(self, type_name: str, edge_name: str, target: str) -> bool:
        changed = self.schema.add_edge(type_name, edge_name, target)
        if changed:
            self.push()
        return changed

    def push(self) -> None:
        schema = self.schema
        logger.info("schema_push", types=len(schema.types))
        self.admin.update_schema(schema)
        self.confirm()

    def confirm(self) -> None:
        """Poll the admin endpoint until it serves every local type and field."""
        for attempt in range(1, self.attempts + 1):
            remote = self.admin.get_current_schema()
            if remote is not None and self._converged(remote):
                return
            logger.debug("schema_not_converged", attempt=attempt)
            if attempt < self.attempts:
                self._sleep(self.delay)
        raise SchemaSyncError(
            f"Remote schema did not converge after {self.attempts} attempts"
        )

    def _converged(self, remote: Schema) -> bool:
        for name, local_type in self.schema.types.items():
            remote_type = remote.get_type(name)
            if remote_type is None:
                return False
            if any(remote_type.get_field(f) != local_type.get_field(f) for f in local_type.fields):
                return False
        return all(remote.has_interface(name) for name in self.schema.interfaces)

    # =========================================================================
    # Startup helpers
    # =========================================================================

    def _ensure_base(self) -> bool:
        schema = self.schema
        changed = False
        if not schema.has_interface(DOCUMENT_INTERFACE):
            schema.set_interface(document_interface())
            changed = True
        if not schema.has_type(CURSOR_TYPE):
            schema.update_type(cursor_type())
            changed = True
        return changed

    def _ensure_interface(self, interface: SimplifiedInterface) -> bool:
        """Add a configured interface, or merge new fields into the stored one."""
        schema = self.schema
        stored = schema.get_interface(interface.name)
        if stored is None:
            logger.info("schema_interface_added", interface=interface.name)
            schema.set_interface(interface)
            return True

        missing = [f for name, f in interface.fields.items() if not stored.has_field(name)]
        if not missing:
            return False
        stored.set_fields(missing)
        for simplified_type in list(schema.types.values()):
            if simplified_type.has_interface(interface.name):
                updated = simplified_type.clone()
                updated.add_interface(stored, schema.widens)
                schema.update_type(updated)
        logger.info(
            "schema_interface_extended",
            interface=interface.name,
            fields=[f.name for f in missing],
        )
        return True

    def _ensure_placeholders(self, interface: SimplifiedInterface) -> bool:
        """Create empty Document types the interface refers to or applies to."""
        schema = self.schema
        names = [f.type for f in interface.object_fields() if not schema.has_interface(f.type)]
        names.extend(sorted(interface.types))
        changed = False
        for name in dict.fromkeys(names):
            if schema.has_type(name):
                continue
            schema.update_type(self._placeholder_type(name))
            changed = True
        return changed

    def _placeholder_type(self, name: str) -> SimplifiedType:
        placeholder = document_type(name)
        if self.id_fields is not None:
            placeholder.set_fields(self.id_fields(name))
        for interface in self.interfaces.interfaces_for(name):
            placeholder.add_interface(interface, self.schema.widens)
        return placeholder


__all__ = ["SchemaSynchronizer"]
