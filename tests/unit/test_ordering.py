"""
Unit tests for dependency ordering.

Tests cover:
- Bases preceding derived types
- Stable ordering of independent types
- Cycle and dangling-base detection
- Strict target validation
- Deep inheritance chains
"""

import pytest

from schemagraph.errors import DependencyCycleError, UnknownReferenceError
from schemagraph.reflection.ordering import GraphOrderer, topo_sort
from schemagraph.reflection.registry import TypeRegistry
from schemagraph.reflection.types import (
    ArrayType,
    Cardinality,
    FieldDef,
    FieldKind,
    ObjectType,
    ScalarType,
)

from schema_fixtures import as_uuid


def make_object(n, name, *bases, fields=()):
    """Helper to create an object type with bases given by number."""
    return ObjectType(
        id=as_uuid(n),
        name=name,
        bases=tuple(as_uuid(b) for b in bases),
        fields=tuple(fields),
    )


def names(registry):
    return [r.name for r in registry.values()]


def assert_bases_first(registry):
    position = {type_id: i for i, type_id in enumerate(registry)}
    for type_id, record in registry.items():
        for base_id in record.base_ids:
            assert position[base_id] < position[type_id], record.name


class TestGraphOrderer:
    """Tests for GraphOrderer."""

    def test_animal_dog_cat(self):
        """Shared base comes first; siblings keep input order."""
        types = [
            make_object(2, "Dog", 1),
            make_object(3, "Cat", 1),
            make_object(1, "Animal"),
        ]

        ordered = topo_sort(types)

        assert names(ordered) == ["Animal", "Dog", "Cat"]

    def test_already_ordered_input_unchanged(self):
        """Input that already satisfies the order is kept as is."""
        types = [
            make_object(1, "Animal"),
            make_object(2, "Dog", 1),
            make_object(3, "Cat", 1),
        ]

        assert names(topo_sort(types)) == ["Animal", "Dog", "Cat"]

    def test_diamond(self):
        """Every base precedes every type declaring it."""
        types = [
            make_object(4, "D", 2, 3),
            make_object(2, "B", 1),
            make_object(3, "C", 1),
            make_object(1, "A"),
        ]

        ordered = topo_sort(types)

        assert_bases_first(ordered)
        assert names(ordered) == ["A", "B", "C", "D"]

    def test_scalar_bases(self):
        """Scalar bases are ordered like object bases."""
        types = [
            ScalarType(id=as_uuid(2), name="default::ticket", bases=(as_uuid(1),)),
            ScalarType(id=as_uuid(1), name="std::sequence"),
        ]

        assert names(topo_sort(types)) == ["std::sequence", "default::ticket"]

    def test_non_inheriting_variants_keep_position(self):
        """Arrays and tuples have no base edges."""
        types = [
            ArrayType(id=as_uuid(10), name="array<Dog>", element_type_id=as_uuid(2)),
            make_object(2, "Dog", 1),
            make_object(1, "Animal"),
        ]

        assert names(topo_sort(types)) == ["array<Dog>", "Animal", "Dog"]

    def test_duplicate_bases_collapsed(self):
        """A base listed twice is visited once."""
        types = [make_object(2, "Dog", 1, 1), make_object(1, "Animal")]

        assert names(topo_sort(types)) == ["Animal", "Dog"]

    def test_input_registry_untouched(self):
        """Ordering builds a new frozen registry."""
        registry = TypeRegistry([make_object(2, "Dog", 1), make_object(1, "Animal")])

        ordered = GraphOrderer().order(registry)

        assert names(registry) == ["Dog", "Animal"]
        assert registry.frozen is False
        assert ordered is not registry
        assert ordered.frozen is True
        assert ordered.fingerprint is not None

    def test_two_cycle(self):
        """A bases B and B bases A is a dependency cycle."""
        types = [make_object(1, "A", 2), make_object(2, "B", 1)]

        with pytest.raises(DependencyCycleError) as exc_info:
            topo_sort(types)

        assert {exc_info.value.type_name, exc_info.value.other_name} == {"A", "B"}

    def test_self_cycle(self):
        """A type that bases itself is a cycle."""
        with pytest.raises(DependencyCycleError, match="between A and A"):
            topo_sort([make_object(1, "A", 1)])

    def test_long_cycle(self):
        """Cycles through several types are detected."""
        types = [
            make_object(0, "Root"),
            make_object(1, "A", 3),
            make_object(2, "B", 1),
            make_object(3, "C", 2, 0),
        ]

        with pytest.raises(DependencyCycleError):
            topo_sort(types)

    def test_unknown_base(self):
        """A base missing from the input is an unknown reference."""
        with pytest.raises(UnknownReferenceError) as exc_info:
            topo_sort([make_object(2, "Dog", 1)])

        assert exc_info.value.reference == as_uuid(1)
        assert exc_info.value.referrer == "Dog"

    def test_unknown_base_reported_before_cycle(self):
        """Bases are validated before traversal starts."""
        types = [make_object(1, "A", 2), make_object(2, "B", 1), make_object(3, "C", 9)]

        with pytest.raises(UnknownReferenceError):
            topo_sort(types)

    def test_dangling_field_target_allowed_by_default(self):
        """Only bases are validated unless strict."""
        field = FieldDef(Cardinality.ONE, FieldKind.VALUE, "name", as_uuid(99))

        ordered = topo_sort([make_object(1, "User", fields=[field])])

        assert names(ordered) == ["User"]

    def test_dangling_field_target_strict(self):
        """Strict mode validates field targets too."""
        field = FieldDef(Cardinality.ONE, FieldKind.VALUE, "name", as_uuid(99))

        with pytest.raises(UnknownReferenceError) as exc_info:
            topo_sort([make_object(1, "User", fields=[field])], strict_targets=True)

        assert exc_info.value.reference == as_uuid(99)

    def test_deep_chain(self):
        """Long inheritance chains do not hit the recursion limit."""
        depth = 5000
        types = [make_object(i, f"T{i}", i - 1) for i in range(depth, 0, -1)]
        types.append(make_object(0, "T0"))

        ordered = topo_sort(types)

        assert names(ordered) == [f"T{i}" for i in range(depth + 1)]

    def test_deterministic(self):
        """Ordering the same input twice gives the same result."""
        types = [
            make_object(4, "D", 2, 3),
            make_object(2, "B", 1),
            make_object(3, "C", 1),
            make_object(1, "A"),
            make_object(5, "E"),
        ]

        first = topo_sort(types)
        second = topo_sort(types)

        assert list(first) == list(second)
        assert first.fingerprint == second.fingerprint
