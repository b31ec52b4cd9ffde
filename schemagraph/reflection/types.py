"""
Core type definitions for reflected schema types.

This module defines the strongly-typed records a reflected schema is
normalized into:
- FieldDef: A field ("pointer") of an object type, or a link property
- ReverseFieldDef: A synthesized inverse of a link ("backlink")
- ScalarType, ObjectType, ArrayType, TupleType, RangeType, UnknownType:
  the closed set of TypeRecord variants

Invariants:
    - Identifiers are uuid.UUID values; equality is by raw value
    - nested_fields is None unless the field is a REFERENCE
    - Records are frozen; passes replace a record rather than mutate it
    - Exclusivity groups are read-only mappings
    - NUMBER_TYPE has no cast_target; every numeric built-in and every
      sequence scalar casts to NUMBER_TYPE

How to change safely:
    - Add new attributes with defaults so existing constructors keep working
    - Add a new TypeRecord variant only together with a branch at every
      isinstance dispatch over TypeRecord
    - Never mutate NUMERIC_TYPE_MAPPING; pass a different mapping instead

Example:
    >>> from schemagraph.reflection.types import FieldDef, Cardinality, FieldKind
    >>> title = FieldDef(
    ...     cardinality=Cardinality.ONE,
    ...     kind=FieldKind.VALUE,
    ...     name="title",
    ...     target_id=uuid.UUID("00000000-0000-0000-0000-000000000101"),
    ... )
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from dataclasses import field as dataclass_field
from enum import Enum
from types import MappingProxyType
from typing import Any, ClassVar, Mapping, Optional, Union

from ..errors import MalformedRecordError

Identifier = uuid.UUID

# Well-known schema names
SEQUENCE_MARKER = "std::sequence"
BASE_OBJECT_NAME = "std::BaseObject"
EXCLUSIVE_CONSTRAINT = "std::exclusive"
MATERIAL_MODULE_PREFIXES = ("std::", "cal::")
DEFAULT_MODULE_PREFIX = "default::"
IMPLICIT_LINK_PROPERTIES = frozenset({"source", "target"})


def parse_identifier(value: Any, record_name: Optional[str] = None) -> Identifier:
    """Parse a raw textual id into an Identifier.

    Args:
        value: UUID string (or an existing UUID)
        record_name: Name of the record being parsed, for error context

    Returns:
        Parsed uuid.UUID

    Raises:
        MalformedRecordError: If value is not a valid 128-bit UUID
    """
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError) as e:
        raise MalformedRecordError(
            f"Invalid type id {value!r} in record '{record_name}'",
            record_name=record_name,
            attribute="id",
        ) from e


class TypeKind(Enum):
    """Discriminator of the TypeRecord variants."""

    OBJECT = "object"
    SCALAR = "scalar"
    ARRAY = "array"
    TUPLE = "tuple"
    RANGE = "range"
    UNKNOWN = "unknown"

    @classmethod
    def from_str(cls, value: str) -> TypeKind:
        """Convert string representation to TypeKind.

        Raises:
            ValueError: If value is not a valid type kind
        """
        for kind in cls:
            if kind.value == value:
                return kind
        valid = [k.value for k in cls]
        raise ValueError(f"Invalid type kind '{value}'. Valid kinds: {valid}")


class Cardinality(Enum):
    """How many values a field holds."""

    ONE = "One"
    AT_MOST_ONE = "AtMostOne"
    AT_LEAST_ONE = "AtLeastOne"
    MANY = "Many"

    @classmethod
    def from_raw(cls, raw_cardinality: str, required: bool) -> Cardinality:
        """Combine a raw "One"/"Many" cardinality with the required flag.

        Args:
            raw_cardinality: Cardinality as introspected ("One" or "Many")
            required: Whether the field is required

        Returns:
            Corresponding Cardinality

        Raises:
            ValueError: If raw_cardinality is neither "One" nor "Many"

        Example:
            >>> Cardinality.from_raw("One", required=False)
            <Cardinality.AT_MOST_ONE: 'AtMostOne'>
        """
        if raw_cardinality == "One":
            return cls.ONE if required else cls.AT_MOST_ONE
        if raw_cardinality == "Many":
            return cls.AT_LEAST_ONE if required else cls.MANY
        raise ValueError(
            f"Invalid cardinality '{raw_cardinality}'. Valid values: ['One', 'Many']"
        )

    @property
    def is_singular(self) -> bool:
        """Whether at most one value is held."""
        return self in (Cardinality.ONE, Cardinality.AT_MOST_ONE)

    @property
    def is_multi(self) -> bool:
        """Whether more than one value may be held."""
        return not self.is_singular


class FieldKind(Enum):
    """Whether a field references an object type or holds a value."""

    REFERENCE = "link"
    VALUE = "property"

    @classmethod
    def from_str(cls, value: str) -> FieldKind:
        """Convert string representation to FieldKind.

        Raises:
            ValueError: If value is not a valid field kind
        """
        for kind in cls:
            if kind.value == value:
                return kind
        valid = [k.value for k in cls]
        raise ValueError(f"Invalid field kind '{value}'. Valid kinds: {valid}")


@dataclass(frozen=True)
class FieldDef:
    """A named, typed member of an object type.

    Attributes:
        cardinality: How many values the field holds
        kind: REFERENCE (link) or VALUE (property)
        name: Field name as declared
        target_id: Id of the field's target type
        is_exclusive: Whether std::exclusive applies directly to the field
        is_computed: Whether the field is computed
        is_readonly: Whether the field is read-only
        has_default: Whether values are generated when omitted
        nested_fields: Link properties (REFERENCE fields only)

    Invariants:
        - name is non-empty
        - nested_fields is None unless kind is REFERENCE
    """

    cardinality: Cardinality
    kind: FieldKind
    name: str
    target_id: Identifier
    is_exclusive: bool = False
    is_computed: bool = False
    is_readonly: bool = False
    has_default: bool = False
    nested_fields: Optional[tuple[FieldDef, ...]] = None

    def __post_init__(self) -> None:
        """Validate field definition."""
        if not self.name:
            raise ValueError("Field name cannot be empty")
        if self.nested_fields is not None and self.kind != FieldKind.REFERENCE:
            raise ValueError(
                f"nested_fields only allowed on reference fields, not '{self.name}'"
            )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation for serialization."""
        result: dict[str, Any] = {
            "card": self.cardinality.value,
            "kind": self.kind.value,
            "name": self.name,
            "target_id": str(self.target_id),
            "is_exclusive": self.is_exclusive,
            "is_computed": self.is_computed,
            "is_readonly": self.is_readonly,
            "has_default": self.has_default,
        }
        if self.nested_fields is not None:
            result["pointers"] = [f.to_dict() for f in self.nested_fields]
        else:
            result["pointers"] = None
        return result


@dataclass(frozen=True)
class ReverseFieldDef(FieldDef):
    """Synthesized inverse direction of a link.

    Attributes:
        source_field_name: Name of the forward link this field mirrors
    """

    source_field_name: str = ""

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.kind != FieldKind.REFERENCE:
            raise ValueError(f"Reverse field '{self.name}' must be a reference")
        if self.nested_fields is not None:
            raise ValueError(f"Reverse field '{self.name}' cannot have nested fields")

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["stub"] = self.source_field_name
        return result


def _ids(values: tuple[Identifier, ...]) -> list[str]:
    return [str(v) for v in values]


@dataclass(frozen=True)
class ScalarType:
    """A scalar type (built-in, custom, enum or sequence).

    Attributes:
        id: Type id
        name: Fully-qualified name
        is_abstract: Whether the scalar is abstract
        is_sequence: Whether std::sequence is among its ancestors
        bases: Declared bases, in declared order
        enum_values: Members if this is an enum scalar
        materialized_base_id: First non-abstract built-in ancestor, if any
        cast_target: Canonical scalar this one is represented as, if any
    """

    kind: ClassVar[TypeKind] = TypeKind.SCALAR

    id: Identifier
    name: str
    is_abstract: bool = False
    is_sequence: bool = False
    bases: tuple[Identifier, ...] = dataclass_field(default_factory=tuple)
    enum_values: Optional[tuple[str, ...]] = None
    materialized_base_id: Optional[Identifier] = None
    cast_target: Optional[Identifier] = None

    @property
    def base_ids(self) -> tuple[Identifier, ...]:
        return self.bases

    def referenced_ids(self) -> list[Identifier]:
        refs = list(self.bases)
        if self.materialized_base_id is not None:
            refs.append(self.materialized_base_id)
        if self.cast_target is not None:
            refs.append(self.cast_target)
        return refs

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        result: dict[str, Any] = {
            "id": str(self.id),
            "kind": self.kind.value,
            "name": self.name,
            "is_abstract": self.is_abstract,
            "is_seq": self.is_sequence,
            "bases": _ids(self.bases),
            "enum_values": list(self.enum_values) if self.enum_values is not None else None,
            "material_id": (
                str(self.materialized_base_id) if self.materialized_base_id else None
            ),
        }
        if self.cast_target is not None:
            result["cast_type"] = str(self.cast_target)
        return result


@dataclass(frozen=True)
class ObjectType:
    """An object type with its fields and derived metadata.

    Attributes:
        id: Type id
        name: Fully-qualified name
        is_abstract: Whether the type is abstract
        bases: Declared bases, in declared order
        union_members: Member ids if this is a union type
        intersection_members: Member ids if this is an intersection type
        fields: Owned (non-inherited) fields
        reverse_fields: Inverse fields of every link targeting this type
        reverse_field_stubs: Name-only inverse fields targeting std::BaseObject
        exclusivity_groups: Field sets constrained to unique combinations
    """

    kind: ClassVar[TypeKind] = TypeKind.OBJECT

    id: Identifier
    name: str
    is_abstract: bool = False
    bases: tuple[Identifier, ...] = dataclass_field(default_factory=tuple)
    union_members: tuple[Identifier, ...] = dataclass_field(default_factory=tuple)
    intersection_members: tuple[Identifier, ...] = dataclass_field(default_factory=tuple)
    fields: tuple[FieldDef, ...] = dataclass_field(default_factory=tuple)
    reverse_fields: tuple[ReverseFieldDef, ...] = dataclass_field(default_factory=tuple)
    reverse_field_stubs: tuple[ReverseFieldDef, ...] = dataclass_field(default_factory=tuple)
    exclusivity_groups: tuple[Mapping[str, FieldDef], ...] = dataclass_field(
        default_factory=tuple, hash=False
    )

    def __post_init__(self) -> None:
        """Store exclusivity groups as read-only copies."""
        object.__setattr__(
            self,
            "exclusivity_groups",
            tuple(MappingProxyType(dict(group)) for group in self.exclusivity_groups),
        )

    @property
    def base_ids(self) -> tuple[Identifier, ...]:
        return self.bases

    def get_field(self, name: str) -> Optional[FieldDef]:
        """Get an owned field by name.

        Returns:
            FieldDef if found, None otherwise
        """
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def get_field_names(self) -> list[str]:
        """Get list of all owned field names."""
        return [f.name for f in self.fields]

    def referenced_ids(self) -> list[Identifier]:
        refs = list(self.bases)
        refs.extend(self.union_members)
        refs.extend(self.intersection_members)
        for f in self.fields:
            refs.append(f.target_id)
            for nested in f.nested_fields or ():
                refs.append(nested.target_id)
        refs.extend(f.target_id for f in self.reverse_fields)
        refs.extend(f.target_id for f in self.reverse_field_stubs)
        return refs

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "id": str(self.id),
            "kind": self.kind.value,
            "name": self.name,
            "is_abstract": self.is_abstract,
            "bases": _ids(self.bases),
            "union_of": _ids(self.union_members),
            "intersection_of": _ids(self.intersection_members),
            "pointers": [f.to_dict() for f in self.fields],
            "backlinks": [f.to_dict() for f in self.reverse_fields],
            "backlink_stubs": [f.to_dict() for f in self.reverse_field_stubs],
            "exclusives": [
                {name: f.to_dict() for name, f in group.items()}
                for group in self.exclusivity_groups
            ],
        }


@dataclass(frozen=True)
class ArrayType:
    """An array type over a single element type."""

    kind: ClassVar[TypeKind] = TypeKind.ARRAY

    id: Identifier
    name: str
    element_type_id: Identifier
    is_abstract: bool = False

    @property
    def base_ids(self) -> tuple[Identifier, ...]:
        return ()

    def referenced_ids(self) -> list[Identifier]:
        return [self.element_type_id]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "kind": self.kind.value,
            "name": self.name,
            "is_abstract": self.is_abstract,
            "array_element_id": str(self.element_type_id),
        }


@dataclass(frozen=True)
class TupleElement:
    """One element of a tuple type; name is None for unnamed tuples."""

    name: Optional[str]
    target_id: Identifier

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "target_id": str(self.target_id)}


@dataclass(frozen=True)
class TupleType:
    """A tuple type with ordered, optionally named, elements."""

    kind: ClassVar[TypeKind] = TypeKind.TUPLE

    id: Identifier
    name: str
    elements: tuple[TupleElement, ...] = dataclass_field(default_factory=tuple)
    is_abstract: bool = False

    @property
    def base_ids(self) -> tuple[Identifier, ...]:
        return ()

    @property
    def is_named(self) -> bool:
        return bool(self.elements) and all(e.name for e in self.elements)

    def referenced_ids(self) -> list[Identifier]:
        return [e.target_id for e in self.elements]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "kind": self.kind.value,
            "name": self.name,
            "is_abstract": self.is_abstract,
            "tuple_elements": [e.to_dict() for e in self.elements],
        }


@dataclass(frozen=True)
class RangeType:
    """A range type over a single element type."""

    kind: ClassVar[TypeKind] = TypeKind.RANGE

    id: Identifier
    name: str
    element_type_id: Identifier
    is_abstract: bool = False

    @property
    def base_ids(self) -> tuple[Identifier, ...]:
        return ()

    def referenced_ids(self) -> list[Identifier]:
        return [self.element_type_id]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "kind": self.kind.value,
            "name": self.name,
            "is_abstract": self.is_abstract,
            "range_element_id": str(self.element_type_id),
        }


@dataclass(frozen=True)
class UnknownType:
    """A type whose variant is not modelled (pseudo types, disabled ranges)."""

    kind: ClassVar[TypeKind] = TypeKind.UNKNOWN

    id: Identifier
    name: str

    @property
    def base_ids(self) -> tuple[Identifier, ...]:
        return ()

    def referenced_ids(self) -> list[Identifier]:
        return []

    def to_dict(self) -> dict[str, Any]:
        return {"id": str(self.id), "kind": self.kind.value, "name": self.name}


TypeRecord = Union[ObjectType, ScalarType, ArrayType, TupleType, RangeType, UnknownType]


# Canonical numeric scalar: every numeric built-in and every sequence casts to it
NUMBER_TYPE = ScalarType(
    id=uuid.UUID("00000000-0000-0000-0000-0000000001ff"),
    name="std::number",
)

INT16_ID = uuid.UUID("00000000-0000-0000-0000-000000000103")
INT32_ID = uuid.UUID("00000000-0000-0000-0000-000000000104")
INT64_ID = uuid.UUID("00000000-0000-0000-0000-000000000105")
FLOAT32_ID = uuid.UUID("00000000-0000-0000-0000-000000000106")
FLOAT64_ID = uuid.UUID("00000000-0000-0000-0000-000000000107")

NUMERIC_TYPE_MAPPING: Mapping[Identifier, ScalarType] = MappingProxyType(
    {
        INT16_ID: NUMBER_TYPE,
        INT32_ID: NUMBER_TYPE,
        INT64_ID: NUMBER_TYPE,
        FLOAT32_ID: NUMBER_TYPE,
        FLOAT64_ID: NUMBER_TYPE,
    }
)
