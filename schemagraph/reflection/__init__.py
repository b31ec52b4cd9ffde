"""
Reflection module for schemagraph.

This module turns introspected schema records into an ordered type graph:
- Type records (ObjectType, ScalarType, ArrayType, TupleType, RangeType, UnknownType)
- TypeRegistry, the insertion-ordered container every pass works on
- RecordNormalizer, ConstraintGroupResolver and GraphOrderer passes

Invariants:
    - Bases precede derived types in the final registry
    - Every numeric built-in and sequence scalar casts to std::number
    - The final registry is frozen
"""

from .constraints import ConstraintGroupResolver, parse_constraint_target
from .introspect import (
    SchemaSource,
    build_type_graph,
    index_by_name,
    introspect_types,
    supports_range_type,
)
from .normalizer import RecordNormalizer, decode_raw_records, normalize_types
from .ordering import GraphOrderer, topo_sort
from .registry import TypeRegistry
from .types import (
    NUMBER_TYPE,
    NUMERIC_TYPE_MAPPING,
    ArrayType,
    Cardinality,
    FieldDef,
    FieldKind,
    Identifier,
    ObjectType,
    RangeType,
    ReverseFieldDef,
    ScalarType,
    TupleElement,
    TupleType,
    TypeKind,
    TypeRecord,
    UnknownType,
    parse_identifier,
)

__all__ = [
    # Types
    "Identifier",
    "Cardinality",
    "FieldKind",
    "FieldDef",
    "ReverseFieldDef",
    "TypeKind",
    "TypeRecord",
    "ObjectType",
    "ScalarType",
    "ArrayType",
    "TupleElement",
    "TupleType",
    "RangeType",
    "UnknownType",
    "NUMBER_TYPE",
    "NUMERIC_TYPE_MAPPING",
    "parse_identifier",
    # Registry
    "TypeRegistry",
    # Passes
    "RecordNormalizer",
    "decode_raw_records",
    "normalize_types",
    "ConstraintGroupResolver",
    "parse_constraint_target",
    "GraphOrderer",
    "topo_sort",
    # Pipeline
    "SchemaSource",
    "build_type_graph",
    "introspect_types",
    "index_by_name",
    "supports_range_type",
]
