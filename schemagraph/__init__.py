"""
schemagraph - Ordered, strongly-typed graphs of reflected database schemas.

This package turns the raw type records returned by schema introspection
into a validated graph for code generators:
- Normalization of loosely-typed records into frozen type records
- Reverse-field synthesis and exclusive constraint grouping
- Collapse of numeric scalars onto a canonical std::number
- Topological ordering by inheritance, with cycle detection

Example:
    >>> from schemagraph import build_type_graph
    >>> graph = build_type_graph(raw_records, supports_range_type=True)
    >>> graph.frozen
    True

Invariants:
    - No I/O: fetching the schema and writing generated code live elsewhere
    - All failures derive from SchemaGraphError and are fatal

Version: 1.0.0
"""

__version__ = "1.0.0"

from .errors import (
    DependencyCycleError,
    MalformedConstraintExpressionError,
    MalformedRecordError,
    NotFoundError,
    RegistryFrozenError,
    SchemaGraphError,
    UnknownReferenceError,
)
from .reflection import (
    NUMBER_TYPE,
    TypeRegistry,
    build_type_graph,
    introspect_types,
    supports_range_type,
)

__all__ = [
    # Version
    "__version__",
    # Pipeline
    "build_type_graph",
    "introspect_types",
    "supports_range_type",
    "TypeRegistry",
    "NUMBER_TYPE",
    # Errors
    "SchemaGraphError",
    "NotFoundError",
    "RegistryFrozenError",
    "MalformedRecordError",
    "UnknownReferenceError",
    "DependencyCycleError",
    "MalformedConstraintExpressionError",
]
