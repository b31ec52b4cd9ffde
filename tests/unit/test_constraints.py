"""
Unit tests for exclusive constraint resolution.

Tests cover:
- Parsing of parenthesized constraint targets
- Single-field and composite groups
- Dropping (or, when strict, rejecting) partially resolvable groups
- Coexisting and duplicate descriptors
"""

import pytest

from schemagraph.errors import MalformedConstraintExpressionError, MalformedRecordError
from schemagraph.reflection.constraints import (
    ConstraintGroupResolver,
    parse_constraint_target,
)
from schemagraph.reflection.types import Cardinality, FieldDef, FieldKind, ObjectType

from schema_fixtures import as_uuid


def make_field(name):
    """Helper to create an owned value field."""
    return FieldDef(Cardinality.AT_MOST_ONE, FieldKind.VALUE, name, as_uuid(0x101))


@pytest.fixture
def person():
    """Person object type with three owned fields."""
    return ObjectType(
        id=as_uuid(0x500),
        name="default::Person",
        fields=(make_field("first_name"), make_field("last_name"), make_field("age")),
    )


def targets(*exprs):
    return [{"target": e} for e in exprs]


class TestParseConstraintTarget:
    """Tests for parse_constraint_target."""

    def test_plain_name_is_not_composite(self):
        """A bare field name is not a composite target."""
        assert parse_constraint_target("age") is None

    def test_composite_with_trailing_comma(self):
        """Leading dots and trailing commas are trimmed."""
        assert parse_constraint_target("(.first_name .last_name,)") == [
            "first_name",
            "last_name",
        ]

    def test_composite_with_commas_between(self):
        """Comma-separated members are split on whitespace."""
        assert parse_constraint_target("(.a, .b, .c)") == ["a", "b", "c"]

    def test_extra_whitespace(self):
        """Repeated whitespace does not produce empty members."""
        assert parse_constraint_target("(.a   .b )") == ["a", "b"]

    def test_empty_parentheses(self):
        """Empty parentheses give no members."""
        assert parse_constraint_target("()") == []

    def test_unbalanced_is_not_composite(self):
        """Only fully wrapped targets are composite."""
        assert parse_constraint_target("(.a .b") is None
        assert parse_constraint_target("") is None


class TestConstraintGroupResolver:
    """Tests for ConstraintGroupResolver."""

    def test_single_field_group(self, person):
        """A target naming an owned field yields a one-entry group."""
        groups = ConstraintGroupResolver().resolve(person, targets("age"))

        assert groups == ({"age": person.get_field("age")},)

    def test_composite_group(self, person):
        """A composite target over owned fields yields one group."""
        groups = ConstraintGroupResolver().resolve(
            person, targets("(.first_name .last_name,)")
        )

        assert len(groups) == 1
        assert groups[0] == {
            "first_name": person.get_field("first_name"),
            "last_name": person.get_field("last_name"),
        }

    def test_groups_are_read_only(self, person):
        """Resolved groups reject item assignment."""
        groups = ConstraintGroupResolver().resolve(
            person, targets("age", "(.first_name .last_name,)")
        )

        for group in groups:
            with pytest.raises(TypeError):
                group["age"] = person.get_field("age")

    def test_partially_resolved_group_is_dropped(self, person):
        """A composite target with an unknown member contributes nothing."""
        groups = ConstraintGroupResolver().resolve(
            person, targets("(.first_name .nickname,)")
        )

        assert groups == ()

    def test_strict_mode_raises(self, person):
        """Strict resolution rejects unresolved composite members."""
        resolver = ConstraintGroupResolver(strict=True)

        with pytest.raises(MalformedConstraintExpressionError) as exc_info:
            resolver.resolve(person, targets("(.first_name .nickname,)"))

        assert exc_info.value.unresolved == ["nickname"]
        assert exc_info.value.type_name == "default::Person"

    def test_unknown_single_target_ignored(self, person):
        """A single target that is not an owned field is ignored."""
        groups = ConstraintGroupResolver(strict=True).resolve(person, targets("id"))

        assert groups == ()

    def test_forms_coexist_in_order(self, person):
        """Single and composite groups appear in descriptor order."""
        groups = ConstraintGroupResolver().resolve(
            person, targets("age", "(.first_name .last_name,)")
        )

        assert [sorted(g) for g in groups] == [["age"], ["first_name", "last_name"]]

    def test_duplicates_not_deduplicated(self, person):
        """Equal descriptors give equal, repeated groups."""
        groups = ConstraintGroupResolver().resolve(
            person, targets("(.first_name .last_name)", "(.last_name .first_name,)")
        )

        assert len(groups) == 2
        assert groups[0] == groups[1]

    def test_empty_parentheses_dropped(self, person):
        """A group with no members is never emitted."""
        assert ConstraintGroupResolver().resolve(person, targets("()")) == ()

    def test_missing_target_is_malformed(self, person):
        """Descriptors must carry a string target."""
        with pytest.raises(MalformedRecordError):
            ConstraintGroupResolver().resolve(person, [{"name": "std::exclusive"}])
