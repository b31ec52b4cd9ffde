"""
End-to-end construction of an ordered type graph.

Ties the passes together: raw records are fetched once from a SchemaSource,
normalized, given exclusivity groups, and ordered into a frozen registry
ready for code generation.

Invariants:
    - The snapshot is fully fetched before normalization starts
    - Errors from any pass propagate unchanged; nothing partial is returned
    - The same snapshot always yields the same order and fingerprint

Example:
    >>> graph = introspect_types(source, supports_range_type=supports_range_type(2))
    >>> [t.name for t in graph.values()][:2]
    ['std::anyscalar', 'std::str']
"""

from __future__ import annotations

import json
import logging
from typing import Dict, Optional, Protocol

from ..config import ReflectionSettings, get_settings
from .constraints import ConstraintGroupResolver
from .normalizer import RawRecords, RecordNormalizer, decode_raw_records
from .ordering import GraphOrderer
from .registry import TypeRegistry
from .types import TypeRecord

logger = logging.getLogger(__name__)

# First server major version with range types
RANGE_TYPE_MIN_MAJOR_VERSION = 2


class SchemaSource(Protocol):
    """Anything that can produce the raw schema dump (JSON text or records)."""

    def fetch_schema_json(self) -> RawRecords:
        ...


def supports_range_type(major_version: int) -> bool:
    """Whether a server of this major version has range types."""
    return major_version >= RANGE_TYPE_MIN_MAJOR_VERSION


def build_type_graph(
    raw_records: RawRecords,
    *,
    supports_range_type: bool,
    settings: Optional[ReflectionSettings] = None,
) -> TypeRegistry:
    """Normalize and order a complete schema snapshot.

    Args:
        raw_records: JSON text or decoded list of raw records
        supports_range_type: Whether range records are modelled
        settings: Strictness and debug settings (environment if omitted)

    Returns:
        Frozen TypeRegistry in dependency order

    Raises:
        MalformedRecordError: If a raw record cannot be normalized
        MalformedConstraintExpressionError: If strict constraints are on and
            a composite constraint cannot be resolved
        UnknownReferenceError: If a base (or, when strict, any) id dangles
        DependencyCycleError: If the base graph has a cycle
    """
    settings = settings or get_settings()
    records = decode_raw_records(raw_records)

    if settings.debug_dump:
        logger.debug(json.dumps(records, indent=2))

    normalizer = RecordNormalizer(
        supports_range_type=supports_range_type,
        constraint_resolver=ConstraintGroupResolver(strict=settings.strict_constraints),
    )
    registry = normalizer.normalize(records)
    return GraphOrderer(strict_targets=settings.strict_targets).order(registry)


def introspect_types(
    source: SchemaSource,
    *,
    supports_range_type: bool,
    settings: Optional[ReflectionSettings] = None,
) -> TypeRegistry:
    """Fetch a schema snapshot from source and build its ordered type graph.

    See build_type_graph for the errors raised.
    """
    logger.info("Introspecting database schema...")
    return build_type_graph(
        source.fetch_schema_json(),
        supports_range_type=supports_range_type,
        settings=settings,
    )


def index_by_name(registry: TypeRegistry) -> Dict[str, TypeRecord]:
    """Map type name to record, in registry order."""
    return {record.name: record for record in registry.values()}
