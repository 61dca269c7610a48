"""Tests for the Doccache engine against the in-memory GraphQL backend."""

import pytest

from doccache.config import DoccacheConfig
from doccache.core.errors import (
    IncompatibleFieldError,
    InstanceStoreError,
    InvalidContentError,
    MissingEndpointError,
    MissingLogicalIdError,
    TransportError,
)
from doccache.core.settings import DoccacheSettings
from doccache.domain.edge import ChainEdge
from doccache.domain.logical_ids import LogicalIds, logical_id_field
from doccache.domain.type_mappings import TypeMapping, TypeMappings
from doccache.engine.doccache import Doccache
from doccache.gql.field import SimplifiedField
from doccache.gql.interface import SimplifiedInterfaces
from doccache.gql.schema import SchemaUpdateOp
from doccache.gql.types import SimplifiedInterface


def _votable():
    fields = [
        SimplifiedField.scalar("ballot_expiration_t", "DateTime", "hour"),
        SimplifiedField.scalar("details_title_s", "String", "regexp"),
        SimplifiedField.edge("vote", "Vote"),
    ]
    return SimplifiedInterface(
        name="Votable",
        fields={f.name: f for f in fields},
        signature_fields=["ballot_expiration_t", "details_title_s"],
    )


def _edge(name, from_id, to_id):
    return ChainEdge(name=name, from_id=str(from_id), to_id=str(to_id))


# =============================================================================
# Startup and cursor
# =============================================================================


class TestStart:
    """Schema bootstrap and the singleton cursor."""

    def test_fresh_store(self, fake_dgraph, doccache_factory):
        cache = doccache_factory()
        assert cache.cursor == ""
        assert fake_dgraph.cursor() == ""
        assert fake_dgraph.schema().has_type("Cursor")

    def test_resumes_persisted_cursor(self, fake_dgraph, doccache_factory):
        doccache_factory().update_cursor("c-42")
        assert doccache_factory().cursor == "c-42"

    def test_create_from_config(self, fake_dgraph):
        config = DoccacheConfig.from_settings(DoccacheSettings(schema_sync_attempts=2))
        cache = Doccache.create(config, fake_dgraph.admin, fake_dgraph.data, sleep=lambda _: None)
        assert cache.synchronizer.attempts == 2
        assert cache.start() == ""


# =============================================================================
# store_document
# =============================================================================


class TestStoreDocument:
    """Schema induction and instance writes."""

    def test_first_write_induces_schema(self, fake_dgraph, chain_doc, doccache_factory):
        cache = doccache_factory()
        doc = chain_doc(21, "period", {"details": {"number": ("int64", 1)}})

        assert cache.store_document(doc, "c1") is SchemaUpdateOp.CREATED

        period = fake_dgraph.schema().get_type("Period")
        assert period.get_field("details_number_i") == SimplifiedField.scalar("details_number_i", "Int64", "int64")
        assert period.has_interface("Document")
        for name in ("docId", "docId_i", "hash", "type", "creator", "createdDate", "updatedDate"):
            assert period.has_field(name)

        row = fake_dgraph.get("Period", "21")
        assert row["hash"] == "h21"
        assert row["docId_i"] == 21
        assert row["type"] == "Period"
        assert row["details_number_i"] == 1
        assert row["createdDate"] == "2021-01-05T18:00:00.000Z"
        assert fake_dgraph.cursor() == "c1"
        assert cache.cursor == "c1"

    def test_restore_same_document(self, fake_dgraph, chain_doc, doccache_factory):
        cache = doccache_factory()
        doc = chain_doc(21, "period", {"details": {"number": ("int64", 1)}})
        cache.store_document(doc, "c1")
        pushes = len(fake_dgraph.schema_pushes)

        assert cache.store_document(doc, "c2") is SchemaUpdateOp.NONE
        assert len(fake_dgraph.schema_pushes) == pushes
        assert fake_dgraph.get("Period", "21")["details_number_i"] == 1
        assert fake_dgraph.cursor() == "c2"

    def test_update_adds_fields_and_removes_stale_values(self, fake_dgraph, chain_doc, doccache_factory):
        cache = doccache_factory()
        cache.store_document(chain_doc(21, "period", {"details": {"number": ("int64", 1)}}), "c1")

        op = cache.store_document(chain_doc(21, "period", {"details": {"title": ("string", "Q1")}}), "c2")

        assert op is SchemaUpdateOp.UPDATED
        period = fake_dgraph.schema().get_type("Period")
        assert period.has_field("details_number_i")
        assert period.has_field("details_title_s")
        row = fake_dgraph.get("Period", "21")
        assert row["details_title_s"] == "Q1"
        assert "details_number_i" not in row

    def test_new_primitive_type_is_new_field(self, fake_dgraph, chain_doc, doccache_factory):
        cache = doccache_factory()
        cache.store_document(chain_doc(21, "period", {"details": {"number": ("int64", 1)}}), "c1")
        cache.store_document(chain_doc(22, "period", {"details": {"number": ("string", "one")}}), "c2")
        period = fake_dgraph.schema().get_type("Period")
        assert period.get_field("details_number_i").type == "Int64"
        assert period.get_field("details_number_s").type == "String"

    def test_document_without_type(self, fake_dgraph, chain_doc, doccache_factory):
        cache = doccache_factory()
        with pytest.raises(InvalidContentError, match="does not have a type"):
            cache.store_document(chain_doc(21, None, {"details": {"number": ("int64", 1)}}), "c1")
        assert fake_dgraph.cursor() == ""

    def test_reserved_type_name(self, fake_dgraph, chain_doc, doccache_factory):
        cache = doccache_factory()
        with pytest.raises(InvalidContentError, match="not a valid document type name"):
            cache.store_document(chain_doc(21, "cursor", {"details": {"number": ("int64", 1)}}), "c1")
        assert fake_dgraph.cursor() == ""
        assert not fake_dgraph.schema().get_type("Cursor").has_field("details_number_i")

    def test_punctuated_labels_and_large_int64(self, fake_dgraph, chain_doc, doccache_factory):
        cache = doccache_factory()
        doc = chain_doc(
            21,
            "period",
            {"details": {"url:link": ("string", "https://hypha.earth"), "supply": ("int64", "9223372036854775807")}},
        )
        cache.store_document(doc, "c1")
        stored = fake_dgraph.get("Period", "21")
        assert stored["details_urllink_s"] == "https://hypha.earth"
        assert stored["details_supply_i"] == 2**63 - 1
        assert fake_dgraph.cursor() == "c1"

    def test_type_mapping_overrides_system_type(self, fake_dgraph, chain_doc, doccache_factory):
        mappings = TypeMappings([TypeMapping("vote.tally", frozenset({"details_pass", "details_fail"}))])
        cache = doccache_factory(type_mappings=mappings)
        doc = chain_doc(51, "vote", {"details": {"pass": ("asset", "1.00 HVOICE"), "fail": ("asset", "0.00 HVOICE")}})
        cache.store_document(doc, "c1")
        assert fake_dgraph.get("VoteTally", "51")["type"] == "VoteTally"
        assert not fake_dgraph.schema().has_type("Vote")

    def test_atomic_failure_leaves_store_and_cursor(self, fake_dgraph, chain_doc, doccache_factory):
        cache = doccache_factory()
        cache.store_document(chain_doc(21, "period"), "c1")
        fake_dgraph.fail_mutation = TransportError("connection reset")

        with pytest.raises(InstanceStoreError) as excinfo:
            cache.store_document(chain_doc(22, "period"), "c2")

        assert excinfo.value.retryable
        assert fake_dgraph.get("Period", "22") is None
        assert fake_dgraph.cursor() == "c1"
        assert cache.cursor == "c1"

    def test_mutation_and_cursor_share_one_request(self, fake_dgraph, chain_doc, doccache_factory):
        cache = doccache_factory()
        cache.store_document(chain_doc(21, "period"), "c1")
        query, variables = fake_dgraph.data_requests[-1]
        assert "addPeriod(" in query and "addCursor(" in query
        assert variables["inputCursor"] == [{"id": "c1", "cursor": "c1"}]


# =============================================================================
# Core edges
# =============================================================================


class TestCoreEdges:
    """Checksum fields linked to the document holding that hash."""

    def test_resolved_when_referent_exists(self, fake_dgraph, chain_doc, doccache_factory):
        cache = doccache_factory()
        cache.store_document(chain_doc(21, "period", hash="h_p"), "c1")
        cache.store_document(chain_doc(2, "dho", {"details": {"start_period": ("checksum256", "h_p")}}), "c2")

        dho = fake_dgraph.schema().get_type("Dho")
        assert dho.get_field("details_startPeriod_c") == SimplifiedField.scalar(
            "details_startPeriod_c", "String", "exact"
        )
        assert dho.get_field("details_startPeriod_c_edge") == SimplifiedField.core_edge(
            "details_startPeriod_c_edge", "Period"
        )
        row = fake_dgraph.get("Dho", "2")
        assert row["details_startPeriod_c"] == "h_p"
        assert row["details_startPeriod_c_edge"] == {"docId": "21"}

    def test_referent_stored_later(self, fake_dgraph, chain_doc, doccache_factory):
        cache = doccache_factory()
        dho = chain_doc(2, "dho", {"details": {"start_period": ("checksum256", "h_p")}})
        cache.store_document(dho, "c1")
        assert not fake_dgraph.schema().get_type("Dho").has_field("details_startPeriod_c_edge")

        cache.store_document(chain_doc(21, "period", hash="h_p"), "c2")
        assert "details_startPeriod_c_edge" not in fake_dgraph.get("Dho", "2")

        # Linked once the document is stored again
        cache.store_document(dho, "c3")
        assert fake_dgraph.get("Dho", "2")["details_startPeriod_c_edge"] == {"docId": "21"}

    def test_target_generalizes_to_document(self, fake_dgraph, chain_doc, doccache_factory):
        cache = doccache_factory()
        cache.store_document(chain_doc(21, "period", hash="h_p"), "c1")
        cache.store_document(chain_doc(31, "member", hash="h_m"), "c2")
        cache.store_document(chain_doc(2, "dho", {"details": {"ref": ("checksum256", "h_p")}}), "c3")
        cache.store_document(chain_doc(3, "dho", {"details": {"ref": ("checksum256", "h_m")}}), "c4")

        edge = fake_dgraph.schema().get_type("Dho").get_field("details_ref_c_edge")
        assert edge.type == "Document"
        assert fake_dgraph.get("Dho", "3")["details_ref_c_edge"] == {"docId": "31"}

    def test_existing_supertype_is_kept(self, fake_dgraph, chain_doc, doccache_factory):
        cache = doccache_factory()
        cache.store_document(chain_doc(21, "period", hash="h_p"), "c1")
        cache.store_document(chain_doc(31, "member", hash="h_m"), "c2")
        cache.store_document(chain_doc(2, "dho", {"details": {"ref": ("checksum256", "h_p")}}), "c3")
        cache.store_document(chain_doc(3, "dho", {"details": {"ref": ("checksum256", "h_m")}}), "c4")
        pushes = len(fake_dgraph.schema_pushes)

        cache.store_document(chain_doc(4, "dho", {"details": {"ref": ("checksum256", "h_p")}}), "c5")
        assert len(fake_dgraph.schema_pushes) == pushes
        assert fake_dgraph.get("Dho", "4")["details_ref_c_edge"] == {"docId": "21"}


# =============================================================================
# Interfaces and logical ids
# =============================================================================


class TestInterfaces:
    """Signature based interface attachment."""

    def test_attached_by_signature_and_kept(self, fake_dgraph, chain_doc, doccache_factory):
        cache = doccache_factory(interfaces=SimplifiedInterfaces([_votable()]))
        assert fake_dgraph.schema().has_type("Vote")

        payout = chain_doc(
            61,
            "payout",
            {
                "ballot": {"expiration": ("time_point", "2021-02-01T00:00:00.000")},
                "details": {"title": ("string", "Payout")},
            },
        )
        cache.store_document(payout, "c1")
        schema = fake_dgraph.schema()
        assert schema.implements("Payout", "Votable")
        assert schema.get_type("Payout").get_field("vote") == SimplifiedField.edge("vote", "Vote")

        cache.store_document(chain_doc(62, "payout", {"details": {"title": ("string", "Other")}}), "c2")
        assert fake_dgraph.schema().implements("Payout", "Votable")
        assert fake_dgraph.get("Payout", "62")["details_title_s"] == "Other"

    def test_type_without_signature(self, fake_dgraph, chain_doc, doccache_factory):
        cache = doccache_factory(interfaces=SimplifiedInterfaces([_votable()]))
        cache.store_document(chain_doc(21, "period", {"details": {"title": ("string", "Q1")}}), "c1")
        assert not fake_dgraph.schema().implements("Period", "Votable")


class TestLogicalIds:
    """Configured ids enforced on the first document of a type."""

    @pytest.fixture
    def logical_ids(self):
        return LogicalIds({"Dho": [logical_id_field("details", "name", "name")]})

    def test_missing_logical_id(self, fake_dgraph, chain_doc, doccache_factory, logical_ids):
        cache = doccache_factory(logical_ids=logical_ids)
        with pytest.raises(MissingLogicalIdError) as excinfo:
            cache.store_document(chain_doc(2, "dho", {"details": {"title": ("string", "x")}}), "c1")
        assert excinfo.value.context.type_name == "Dho"
        assert excinfo.value.context.field == "details_name_n"
        assert not fake_dgraph.schema().has_type("Dho")

    def test_logical_id_marked_on_creation(self, fake_dgraph, chain_doc, doccache_factory, logical_ids):
        cache = doccache_factory(logical_ids=logical_ids)
        cache.store_document(chain_doc(2, "dho", {"details": {"name": ("name", "dao.hypha")}}), "c1")
        field = fake_dgraph.schema().get_type("Dho").get_field("details_name_n")
        assert field.is_id and field.non_null
        assert fake_dgraph.get("Dho", "2")["details_name_n"] == "dao.hypha"


# =============================================================================
# delete_document
# =============================================================================


class TestDeleteDocument:
    def test_delete_and_restart(self, fake_dgraph, chain_doc, doccache_factory):
        cache = doccache_factory()
        member = chain_doc(31, "member")
        cache.store_document(member, "c1")

        assert cache.delete_document(member, "c2")

        restarted = doccache_factory()
        assert restarted.cursor == "c2"
        assert fake_dgraph.get("Member", "31") is None

    def test_delete_unknown_type_advances_cursor(self, fake_dgraph, chain_doc, doccache_factory):
        cache = doccache_factory()
        assert not cache.delete_document(chain_doc(31, "member"), "c5")
        assert fake_dgraph.cursor() == "c5"


# =============================================================================
# mutate_edge
# =============================================================================


class TestMutateEdge:
    """Array edges from the edge table."""

    @pytest.fixture
    def cache(self, chain_doc, doccache_factory):
        cache = doccache_factory()
        cache.store_document(chain_doc(2, "dho"), "c1")
        cache.store_document(chain_doc(31, "member"), "c2")
        cache.store_document(chain_doc(32, "member"), "c3")
        cache.store_document(chain_doc(41, "user"), "c4")
        return cache

    def test_add_edges_and_generalize(self, fake_dgraph, cache):
        cache.mutate_edge(_edge("member", 2, 31), False, "c5")
        cache.mutate_edge(_edge("member", 2, 32), False, "c6")
        assert fake_dgraph.schema().get_type("Dho").get_field("member").type == "Member"

        cache.mutate_edge(_edge("member", 2, 41), False, "c7")
        assert fake_dgraph.schema().get_type("Dho").get_field("member").type == "Document"
        assert fake_dgraph.get("Dho", "2")["member"] == [{"docId": "31"}, {"docId": "32"}, {"docId": "41"}]
        assert fake_dgraph.cursor() == "c7"

    def test_remove_edge(self, fake_dgraph, cache):
        cache.mutate_edge(_edge("member", 2, 31), False, "c5")
        cache.mutate_edge(_edge("member", 2, 32), False, "c6")
        cache.mutate_edge(_edge("member", 2, 31), True, "c7")
        assert fake_dgraph.get("Dho", "2")["member"] == [{"docId": "32"}]

    def test_dotted_edge_name(self, fake_dgraph, cache):
        cache.mutate_edge(_edge("held.by", 31, 2), False, "c5")
        assert fake_dgraph.get("Member", "31")["heldBy"] == [{"docId": "2"}]

    def test_restore_keeps_edges(self, fake_dgraph, chain_doc, cache):
        cache.mutate_edge(_edge("member", 2, 31), False, "c5")
        cache.store_document(chain_doc(2, "dho", {"details": {"title": ("string", "x")}}), "c6")
        assert fake_dgraph.get("Dho", "2")["member"] == [{"docId": "31"}]

    def test_missing_endpoint(self, fake_dgraph, cache):
        with pytest.raises(MissingEndpointError) as excinfo:
            cache.mutate_edge(_edge("member", 2, 99), False, "c5")
        assert excinfo.value.context.doc_id == "99"
        assert excinfo.value.context.cursor == "c5"
        assert fake_dgraph.cursor() == "c4"

    def test_edge_name_clashes_with_scalar(self, fake_dgraph, cache):
        with pytest.raises(IncompatibleFieldError, match="as an edge"):
            cache.mutate_edge(_edge("hash", 2, 31), False, "c5")
        assert fake_dgraph.cursor() == "c4"


class TestCursorMonotonicity:
    def test_cursor_is_last_applied(self, fake_dgraph, chain_doc, doccache_factory):
        cache = doccache_factory()
        cache.store_document(chain_doc(21, "period"), "c1")
        cache.update_cursor("c2")
        cache.store_document(chain_doc(22, "period"), "c3")
        with pytest.raises(MissingEndpointError):
            cache.mutate_edge(_edge("next", 21, 99), False, "c4")
        assert fake_dgraph.cursor() == "c3"
        assert cache.cursor == "c3"
