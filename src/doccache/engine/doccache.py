"""
Doccache: projects chain documents and edges into the typed graph.

Every operation applies exactly one upstream delta: it evolves the schema if
needed, then sends the instance mutation and the cursor upsert in a single
GraphQL request, so the effect and the cursor advance commit together.

Manifesto:
    - **One request per delta:** domain mutation + cursor upsert, never apart
    - **Schema before data:** the schema is pushed and confirmed before any
      instance mutation that depends on it is sent
    - **No retries:** errors propagate; the process restarts from the cursor
    - **Idempotent writes:** upsert by ``docId`` with a deterministic body, so
      re-applying a delta after an ambiguous failure is safe

Architecture:
    ::

        store_document(doc, cursor)
          parse ─► resolve core edges ─► logical ids (new type only)
                ─► interfaces ─► synchronizer.update_type
                ─► add(upsert) | update(set, remove)  + cursor   (1 request)

        delete_document(doc, cursor)      delete(docId)          + cursor
        mutate_edge(edge, delete, cursor) add_edge ─► update(set|remove) + cursor
        update_cursor(cursor)             cursor

Examples:
    >>> cache = Doccache.create(config, admin_transport, data_transport)
    >>> cache.start()
    >>> cache.store_document(ChainDocument.from_dict(raw), cursor="c-10")
    <SchemaUpdateOp.CREATED: 'Created'>

Tags:
    engine, projection, graphql, cursor, atomicity, doccache

Doc-Types:
    - API Reference
    - Architecture Documentation
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import TYPE_CHECKING

from doccache.core.errors import IncompatibleEdgeTargetError, MissingEndpointError
from doccache.core.logging import get_logger
from doccache.domain.document import ChainDocument, ParsedDoc
from doccache.domain.edge import ChainEdge
from doccache.domain.logical_ids import LogicalIds
from doccache.domain.type_mappings import TypeMappings
from doccache.gql.admin import SchemaAdmin
from doccache.gql.base_schema import CURSOR_ID, CURSOR_ID_FIELD, DOC_ID_FIELD, cursor_type
from doccache.gql.client import InstanceClient
from doccache.gql.field import DOCUMENT_INTERFACE, SimplifiedField
from doccache.gql.interface import SimplifiedInterfaces
from doccache.gql.mutation import Mutation, add_mutation, update_mutation
from doccache.gql.schema import Schema, SchemaUpdateOp
from doccache.gql.synchronizer import SchemaSynchronizer
from doccache.gql.transport import Executor
from doccache.gql.types import SimplifiedType

if TYPE_CHECKING:
    from doccache.config import DoccacheConfig

logger = get_logger(__name__)


class Doccache:
    """Core engine: one writer, one cursor."""

    def __init__(
        self,
        synchronizer: SchemaSynchronizer,
        client: InstanceClient,
        type_mappings: TypeMappings | None = None,
        interfaces: SimplifiedInterfaces | None = None,
        logical_ids: LogicalIds | None = None,
    ):
        self.synchronizer = synchronizer
        self.client = client
        self.type_mappings = type_mappings or TypeMappings()
        self.interfaces = interfaces if interfaces is not None else synchronizer.interfaces
        self.logical_ids = logical_ids or LogicalIds()
        self.cursor: str | None = None
        self._cursor_type = cursor_type()

    @classmethod
    def create(
        cls,
        config: DoccacheConfig,
        admin_transport: Executor,
        data_transport: Executor,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ) -> Doccache:
        """Wire the engine from configuration and the two GraphQL endpoints."""
        settings = config.settings
        synchronizer = SchemaSynchronizer(
            SchemaAdmin(admin_transport),
            config.interfaces,
            id_fields=config.logical_ids.fields_for,
            attempts=settings.schema_sync_attempts,
            delay=settings.schema_sync_delay,
            sleep=sleep,
        )
        return cls(
            synchronizer,
            InstanceClient(data_transport),
            type_mappings=config.type_mappings,
            interfaces=config.interfaces,
            logical_ids=config.logical_ids,
        )

    @property
    def schema(self) -> Schema:
        return self.synchronizer.schema

    def start(self) -> str:
        """Synchronize the schema and load, or create, the cursor.

        Returns the cursor to resume the stream from ("" on a fresh store).
        """
        self.synchronizer.start()
        instance = self.client.get_one(self._cursor_type, CURSOR_ID, id_name=CURSOR_ID_FIELD)
        if instance is None:
            logger.info("cursor_created")
            self.client.mutate(self._cursor_mutation(""))
            self.cursor = ""
        else:
            self.cursor = instance.get_value("cursor") or ""
        logger.info("cursor_loaded", cursor=self.cursor)
        return self.cursor

    # =========================================================================
    # Operations
    # =========================================================================

    def store_document(self, chain_doc: ChainDocument, cursor: str) -> SchemaUpdateOp:
        """Create or update the instance for ``chain_doc``.

        Returns the schema operation the document caused.

        Raises:
            InvalidContentError: the document can't be parsed or typed
            MissingLogicalIdError: first document of a type lacks an id field
            IncompatibleFieldError: the document conflicts with the schema
            SchemaSyncError / InstanceStoreError: backend failures
        """
        parsed = chain_doc.parse(self.type_mappings)
        current = self.schema.get_type(parsed.type_name)
        new_type = parsed.to_type()

        self._resolve_core_edges(parsed, new_type, current)
        if current is None:
            self.logical_ids.configure(new_type)
        self.interfaces.apply_interfaces(new_type, current, self.schema.widens)

        op = self.synchronizer.update_type(new_type)
        stored = self.schema.get_type(parsed.type_name)
        instance = parsed.to_instance(stored)

        old = None
        if op is not SchemaUpdateOp.CREATED:
            old = self.client.get_one(stored, parsed.doc_id, stored.core_field_names())

        if old is None:
            logger.info("document_creating", type=parsed.type_name, doc_id=parsed.doc_id)
            mutation = instance.add_mutation(upsert=True)
        else:
            logger.info("document_updating", type=parsed.type_name, doc_id=parsed.doc_id)
            mutation = instance.update_mutation(DOC_ID_FIELD, old)
        self._mutate(cursor, mutation)
        return op

    def delete_document(self, chain_doc: ChainDocument, cursor: str) -> bool:
        """Delete the instance for ``chain_doc``; returns False if its type is unknown."""
        parsed = chain_doc.parse(self.type_mappings)
        simplified_type = self.schema.get_type(parsed.type_name)
        if simplified_type is None:
            logger.info("document_delete_unknown_type", type=parsed.type_name, doc_id=parsed.doc_id)
            self.update_cursor(cursor)
            return False

        logger.info("document_deleting", type=parsed.type_name, doc_id=parsed.doc_id)
        instance = parsed.to_instance(simplified_type)
        self._mutate(cursor, instance.delete_mutation(DOC_ID_FIELD))
        return True

    def mutate_edge(self, chain_edge: ChainEdge, delete_op: bool, cursor: str) -> None:
        """Add or remove ``chain_edge`` on its ``from`` document.

        Raises:
            MissingEndpointError: either endpoint is not stored
            IncompatibleFieldError: the edge name clashes with a non edge field
        """
        endpoints = self.client.find_documents(DOC_ID_FIELD, [chain_edge.from_id, chain_edge.to_id])
        for role, doc_id in (("from", chain_edge.from_id), ("to", chain_edge.to_id)):
            if doc_id not in endpoints:
                raise MissingEndpointError(
                    f"{role} node of the relationship: {chain_edge} does not exist, "
                    f"delete op: {delete_op}"
                ).with_context(doc_id=doc_id, cursor=cursor, edge=chain_edge.name)

        from_type = endpoints[chain_edge.from_id]["type"]
        to_type = endpoints[chain_edge.to_id]["type"]
        edge_name = chain_edge.doc_edge_name
        self.synchronizer.add_edge(from_type, edge_name, to_type)

        logger.info(
            "edge_mutating",
            edge=edge_name,
            from_id=chain_edge.from_id,
            to_id=chain_edge.to_id,
            delete_op=delete_op,
        )
        ref = chain_edge.edge_ref(chain_edge.to_id)
        mutation = update_mutation(
            self.schema.get_type(from_type),
            DOC_ID_FIELD,
            chain_edge.from_id,
            None if delete_op else ref,
            ref if delete_op else None,
        )
        self._mutate(cursor, mutation)

    def update_cursor(self, cursor: str) -> None:
        self._mutate(cursor)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _resolve_core_edges(
        self,
        parsed: ParsedDoc,
        new_type: SimplifiedType,
        current: SimplifiedType | None,
    ) -> None:
        """Link checksum fields to the documents whose hash they hold.

        Unresolved references are left unset; the edge is added once a
        document of this type is stored while the referent exists.
        """
        if not parsed.core_edges:
            return
        referents = self.client.find_documents("hash", [ref.hash for ref in parsed.core_edges])
        for ref in parsed.core_edges:
            referent = referents.get(ref.hash)
            if referent is None:
                logger.info(
                    "core_edge_unresolved",
                    type=parsed.type_name,
                    doc_id=parsed.doc_id,
                    field=ref.checksum_field,
                    hash=ref.hash,
                )
                continue
            existing = current.get_field(ref.edge_field) if current is not None else None
            target = self._core_edge_target(parsed.type_name, ref.edge_field, existing, referent["type"])
            new_type.set_field(SimplifiedField.core_edge(ref.edge_field, target))
            parsed.values[ref.edge_field] = {DOC_ID_FIELD: referent[DOC_ID_FIELD]}

    def _core_edge_target(
        self,
        type_name: str,
        edge_field: str,
        existing: SimplifiedField | None,
        referent_type: str,
    ) -> str:
        if existing is None:
            return referent_type
        if self.schema.widens(referent_type, existing.type):
            return existing.type
        if self.schema.is_document(existing.type):
            logger.info(
                "core_edge_generalized",
                type=type_name,
                field=edge_field,
                old_target=existing.type,
                new_target=referent_type,
            )
            return DOCUMENT_INTERFACE
        raise IncompatibleEdgeTargetError(
            f"Core edge: {type_name}.{edge_field} targets: {existing.type}, "
            f"can't point it to: {referent_type}"
        ).with_context(type_name=type_name, field=edge_field)

    def _cursor_mutation(self, cursor: str) -> Mutation:
        return add_mutation(self._cursor_type, {CURSOR_ID_FIELD: CURSOR_ID, "cursor": cursor}, True)

    def _mutate(self, cursor: str, *mutations: Mutation) -> None:
        self.client.mutate(*mutations, self._cursor_mutation(cursor))
        self.cursor = cursor


__all__ = ["Doccache"]
