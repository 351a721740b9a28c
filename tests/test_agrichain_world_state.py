"""Tests for the world-state backends, selector matching and typed accessor."""

import pytest

from agrichain.backends import MemoryWorldState, SQLWorldState, create_store
from agrichain.config import AgriChainConfig
from agrichain.exceptions import QueryError, StaleStateError, ValidationError
from agrichain.keys import KeyCodec
from agrichain.models import EntityKind, Product
from agrichain.world_state import (
    KV,
    ListStateQueryIterator,
    WorldStateAccessor,
    decode_record,
    drain,
    encode_record,
    match_selector,
    selector_body,
)


class TestBackendContract:
    """Versioned get/put behaviour shared by every backend."""

    def test_absent_key(self, store):
        assert store.get_state("product:P1") is None

    def test_put_then_get(self, store):
        version = store.put_state("product:P1", b'{"id": "P1"}')
        stored = store.get_state("product:P1")

        assert version == 1
        assert stored.value == b'{"id": "P1"}'
        assert stored.version == 1

    def test_versions_increase_per_write(self, store):
        store.put_state("k", b"1")
        store.put_state("k", b"2")
        assert store.put_state("k", b"3") == 3
        assert store.get_state("k").value == b"3"

    def test_create_condition(self, store):
        """expected_version=0 only succeeds while the key is absent."""
        assert store.put_state("k", b"first", expected_version=0) == 1
        with pytest.raises(StaleStateError):
            store.put_state("k", b"second", expected_version=0)
        assert store.get_state("k").value == b"first"

    def test_stale_write_changes_nothing(self, store):
        """A write conditioned on an old version is rejected."""
        store.put_state("k", b"v1")
        store.put_state("k", b"v2")

        with pytest.raises(StaleStateError) as exc_info:
            store.put_state("k", b"lost", expected_version=1)

        assert exc_info.value.context["expected_version"] == 1
        assert exc_info.value.context["actual_version"] == 2
        assert store.get_state("k").value == b"v2"
        assert store.get_state("k").version == 2

    def test_matching_version_succeeds(self, store):
        store.put_state("k", b"v1")
        assert store.put_state("k", b"v2", expected_version=1) == 2

    def test_range_scan_in_key_order(self, store):
        for key in ("product:B", "farmer:F", "product:A", "product:C"):
            store.put_state(key, key.encode())

        iterator = store.get_state_by_range("product:", "product;")
        keys = [kv.key for kv in drain(iterator)]

        assert keys == ["product:A", "product:B", "product:C"]

    def test_unbounded_range(self, store):
        store.put_state("b", b"2")
        store.put_state("a", b"1")
        assert [kv.key for kv in drain(store.get_state_by_range("", ""))] == ["a", "b"]

    def test_prefix_scan(self, store):
        for key in ("product:B", "farmer:F", "product:A", "products", "product:\u00e9"):
            store.put_state(key, key.encode())

        keys = [kv.key for kv in drain(store.get_state_by_prefix("product:"))]

        assert keys == ["product:A", "product:B", "product:\u00e9"]

    def test_prefix_scan_treats_wildcards_literally(self, store):
        for key in ("a_1", "ab1", "a%2", "aX2"):
            store.put_state(key, b"{}")

        assert [kv.key for kv in drain(store.get_state_by_prefix("a_"))] == ["a_1"]
        assert [kv.key for kv in drain(store.get_state_by_prefix("a%"))] == ["a%2"]

    def test_empty_prefix_matches_everything(self, store):
        store.put_state("b", b"2")
        store.put_state("a", b"1")
        assert [kv.key for kv in drain(store.get_state_by_prefix(""))] == ["a", "b"]


class TestRichQueryCapability:
    """Native selector support differs per backend."""

    def test_memory_supports_selectors(self, memory_store):
        memory_store.put_state("product:P1", b'{"id": "P1", "farmerID": "F1"}')
        memory_store.put_state("product:P2", b'{"id": "P2", "farmerID": "F2"}')
        memory_store.put_state("product:bad", b"not json")

        results = drain(memory_store.get_query_result({"selector": {"farmerID": "F1"}}))

        assert memory_store.supports_rich_query is True
        assert [kv.key for kv in results] == ["product:P1"]

    def test_memory_rejects_unknown_operator(self, memory_store):
        memory_store.put_state("product:P1", b'{"id": "P1"}')
        with pytest.raises(QueryError):
            memory_store.get_query_result({"selector": {"id": {"$regex": "P"}}})

    def test_sql_has_no_selectors(self, sql_store):
        assert sql_store.supports_rich_query is False
        with pytest.raises(QueryError):
            sql_store.get_query_result({"selector": {"farmerID": "F1"}})

    def test_create_store_from_config(self):
        assert isinstance(create_store(AgriChainConfig()), MemoryWorldState)
        sql = create_store(AgriChainConfig(backend="sql"))
        try:
            assert isinstance(sql, SQLWorldState)
        finally:
            sql.close()


class TestSelectorMatching:
    """Mango-style selector evaluation."""

    DOC = {"id": "P1", "farmerID": "F1", "status": "HARVESTED",
           "currentLocation": {"address": "Depot"}}

    def test_equality(self):
        assert match_selector(self.DOC, {"farmerID": "F1"})
        assert not match_selector(self.DOC, {"farmerID": "F2"})

    def test_missing_field_never_equals(self):
        assert not match_selector(self.DOC, {"quality": ""})

    def test_operators(self):
        assert match_selector(self.DOC, {"status": {"$eq": "HARVESTED"}})
        assert match_selector(self.DOC, {"status": {"$ne": "SOLD"}})
        assert match_selector(self.DOC, {"status": {"$in": ["HARVESTED", "SOLD"]}})
        assert match_selector(self.DOC, {"quality": {"$exists": False}})
        assert not match_selector(self.DOC, {"farmerID": {"$exists": False}})

    def test_dotted_path_and_and(self):
        assert match_selector(
            self.DOC,
            {"$and": [{"currentLocation.address": "Depot"}, {"farmerID": "F1"}]},
        )

    def test_unknown_operator(self):
        with pytest.raises(ValueError):
            match_selector(self.DOC, {"status": {"$gt": "A"}})

    def test_selector_body(self):
        assert selector_body({"selector": {"a": 1}}) == {"a": 1}
        assert selector_body({"a": 1}) == {"a": 1}
        with pytest.raises(ValueError):
            selector_body({"selector": ["a"]})
        with pytest.raises(ValueError):
            selector_body(["a"])


class TestStateQueryIterator:
    """Explicit-release iterator semantics."""

    def test_has_next_next_close(self):
        iterator = ListStateQueryIterator([KV("a", b"1"), KV("b", b"2")])
        assert iterator.has_next()
        assert iterator.next().key == "a"
        iterator.close()
        assert iterator.closed
        assert not iterator.has_next()

    def test_exhausted_next_raises(self):
        iterator = ListStateQueryIterator([])
        with pytest.raises(StopIteration):
            iterator.next()

    def test_context_manager_closes(self):
        iterator = ListStateQueryIterator([KV("a", b"1")])
        with iterator:
            pass
        assert iterator.closed


class TestWorldStateAccessor:
    """Typed read/write over a backend."""

    def test_absent_read_is_not_an_error(self, store):
        accessor = WorldStateAccessor(store, KeyCodec())
        read = accessor.read(EntityKind.PRODUCT, "P1", Product)

        assert read.found is False
        assert read.record is None
        assert read.version == 0
        assert read.key == "product:P1"

    def test_empty_id_reads_as_absent(self, store):
        accessor = WorldStateAccessor(store, KeyCodec())
        assert accessor.read(EntityKind.FARMER, "", Product).found is False

    def test_write_then_read(self, store):
        accessor = WorldStateAccessor(store, KeyCodec())
        accessor.write(EntityKind.PRODUCT, "P1", Product(id="P1", name="Rice"))

        read = accessor.read(EntityKind.PRODUCT, "P1", Product)
        assert read.found
        assert read.record.name == "Rice"
        assert read.version == 1
        assert accessor.version("product:P1") == 1
        assert accessor.version("product:P2") == 0
        assert accessor.entity_exists(EntityKind.PRODUCT, "P1")
        assert not accessor.entity_exists(EntityKind.FARMER, "P1")

    def test_stale_write_names_the_entity(self, store):
        """Conflicts raised through the accessor carry kind and id."""
        accessor = WorldStateAccessor(store, KeyCodec())
        accessor.write(EntityKind.PRODUCT, "P1", Product(id="P1"))

        with pytest.raises(StaleStateError) as exc_info:
            accessor.write(EntityKind.PRODUCT, "P1", Product(id="P1"), expected_version=0)

        assert exc_info.value.entity_kind == "product"
        assert exc_info.value.entity_id == "P1"

    def test_corrupt_payload_is_validation_error(self, store):
        accessor = WorldStateAccessor(store, KeyCodec())
        accessor.put("product:P1", b"{not json")

        with pytest.raises(ValidationError) as exc_info:
            accessor.read(EntityKind.PRODUCT, "P1", Product)
        assert exc_info.value.entity_id == "P1"

    def test_encode_decode(self):
        payload = encode_record(Product(id="P1", farmer_id="F1"))
        assert b'"farmerID":"F1"' in payload
        assert decode_record(Product, payload).farmer_id == "F1"

    def test_decode_reports_invalid_fields(self):
        with pytest.raises(ValidationError) as exc_info:
            decode_record(Product, '{"id": "P1", "status": 7}')
        assert "status" in exc_info.value.context["invalid_fields"]
