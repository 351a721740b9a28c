"""Tests for the world-state key codec."""

import pytest

from agrichain.exceptions import ValidationError
from agrichain.keys import KEY_PREFIXES, KeyCodec
from agrichain.models import EntityKind


class TestNamespacedKeys:
    """Default kind-prefixed keys."""

    def test_entity_keys(self):
        codec = KeyCodec()
        assert codec.entity_key(EntityKind.PRODUCT, "P1") == "product:P1"
        assert codec.entity_key(EntityKind.FARMER, "F1") == "farmer:F1"
        assert codec.entity_key(EntityKind.CERTIFICATE, "C1") == "cert:C1"

    def test_kind_accepts_string_value(self):
        assert KeyCodec().entity_key("farmer", "F1") == "farmer:F1"

    def test_same_id_different_kinds_do_not_collide(self):
        """A farmer and a product may share an id."""
        codec = KeyCodec()
        assert codec.entity_key(EntityKind.PRODUCT, "X") != codec.entity_key(
            EntityKind.FARMER, "X"
        )

    def test_kind_of_and_id_of_invert_entity_key(self):
        codec = KeyCodec()
        for kind in EntityKind:
            key = codec.entity_key(kind, "ID-7")
            assert codec.kind_of(key) is kind
            assert codec.id_of(key) == "ID-7"

    def test_kind_of_unprefixed_key(self):
        assert KeyCodec().kind_of("legacy-id") is None
        assert KeyCodec().id_of("legacy-id") == "legacy-id"

    def test_kind_prefix_covers_only_that_kind(self):
        """The product prefix matches product keys and nothing else."""
        prefix = KeyCodec().kind_prefix(EntityKind.PRODUCT)
        assert prefix == KEY_PREFIXES[EntityKind.PRODUCT]
        assert "product:ZZZ-999".startswith(prefix)
        assert "product:\u00e9\U0010ffff".startswith(prefix)
        assert not "farmer:F1".startswith(prefix)
        assert not "cert:C1".startswith(prefix)

    def test_empty_id_rejected(self):
        with pytest.raises(ValidationError):
            KeyCodec().entity_key(EntityKind.PRODUCT, "")


class TestFlatKeys:
    """Legacy flat key space."""

    def test_entity_key_is_bare_id(self):
        codec = KeyCodec(namespaced=False)
        assert codec.entity_key(EntityKind.PRODUCT, "P1") == "P1"
        assert codec.entity_key(EntityKind.FARMER, "F1") == "F1"

    def test_kind_is_unknowable(self):
        codec = KeyCodec(namespaced=False)
        assert codec.kind_of("P1") is None
        assert codec.kind_prefix(EntityKind.PRODUCT) == ""


class TestStepIds:
    """Supply chain step identifiers."""

    def test_step_id_format(self):
        assert KeyCodec.step_id("P1", 0) == "P1-0"
        assert KeyCodec.step_id("P1", 12) == "P1-12"

    def test_negative_ordinal_rejected(self):
        with pytest.raises(ValueError):
            KeyCodec.step_id("P1", -1)
