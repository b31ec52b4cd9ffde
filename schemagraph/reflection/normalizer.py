"""
Normalization of raw introspection records into typed TypeRecords.

Introspection returns one loosely-typed mapping per schema type. The
RecordNormalizer turns a complete snapshot of those mappings into a
TypeRegistry of frozen TypeRecord variants, in three phases:

1. Forward records: classify every record, derive scalar metadata
   (sequence flag, materialized base) and owned object fields.
2. Derived object metadata: reverse fields and reverse-field stubs from a
   completed index of every link in the schema, and exclusivity groups
   via the ConstraintGroupResolver.
3. Remap: collapse numeric built-ins and sequences onto the canonical
   numeric scalar and make sure that scalar is registered.

Invariants:
    - The whole snapshot is indexed before any record is built
    - Any malformed record aborts the pass; no partial registry is returned
    - The numeric mapping is read, never written
    - Registry order is the raw input order, plus the canonical scalar last

How to change safely:
    - New raw attributes must be optional (default when absent) unless the
      variant cannot be built without them
    - Keep phase 2 independent of record order: it only reads the index
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from ..errors import MalformedRecordError, UnknownReferenceError
from .constraints import ConstraintGroupResolver
from .registry import TypeRegistry
from .types import (
    BASE_OBJECT_NAME,
    DEFAULT_MODULE_PREFIX,
    EXCLUSIVE_CONSTRAINT,
    IMPLICIT_LINK_PROPERTIES,
    MATERIAL_MODULE_PREFIXES,
    NUMBER_TYPE,
    NUMERIC_TYPE_MAPPING,
    SEQUENCE_MARKER,
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

logger = logging.getLogger(__name__)

RawRecord = Mapping[str, Any]
RawRecords = Union[str, bytes, Sequence[RawRecord]]

_MISSING = object()


def decode_raw_records(payload: RawRecords) -> List[RawRecord]:
    """Decode a schema dump into a list of raw records.

    Args:
        payload: JSON text, or an already-decoded sequence of mappings

    Returns:
        List of raw record mappings

    Raises:
        MalformedRecordError: If the payload is not a list of mappings
    """
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except ValueError as e:
            raise MalformedRecordError(f"Schema dump is not valid JSON: {e}") from e

    if not isinstance(payload, (list, tuple)):
        raise MalformedRecordError(
            f"Schema dump must be a list of records, got {type(payload).__name__}"
        )

    records = list(payload)
    for position, raw in enumerate(records):
        if not isinstance(raw, Mapping):
            raise MalformedRecordError(
                f"Record at position {position} must be a mapping, "
                f"got {type(raw).__name__}"
            )
    return records


def _require(raw: RawRecord, key: str, record_name: Optional[str]) -> Any:
    value = raw.get(key, _MISSING)
    if value is _MISSING or value is None:
        raise MalformedRecordError(
            f"Record '{record_name}' is missing required attribute '{key}'",
            record_name=record_name,
            attribute=key,
        )
    return value


def _list(raw: RawRecord, key: str, record_name: Optional[str]) -> list:
    value = raw.get(key)
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        raise MalformedRecordError(
            f"Attribute '{key}' of record '{record_name}' must be a list",
            record_name=record_name,
            attribute=key,
        )
    return list(value)


def _ref_ids(raw: RawRecord, key: str, record_name: Optional[str]) -> tuple[Identifier, ...]:
    """Parse a list of ``{"id": ...}`` references, keeping declared order."""
    ids = []
    for ref in _list(raw, key, record_name):
        if not isinstance(ref, Mapping):
            raise MalformedRecordError(
                f"Entries of '{key}' in record '{record_name}' must be mappings",
                record_name=record_name,
                attribute=key,
            )
        ids.append(parse_identifier(_require(ref, "id", record_name), record_name))
    return tuple(ids)


def _strip_default_module(name: str) -> str:
    if name.startswith(DEFAULT_MODULE_PREFIX):
        return name[len(DEFAULT_MODULE_PREFIX):]
    return name


def _has_exclusive_constraint(raw_pointer: RawRecord, record_name: str) -> bool:
    for constraint in _list(raw_pointer, "constraints", record_name):
        if isinstance(constraint, Mapping) and constraint.get("name") == EXCLUSIVE_CONSTRAINT:
            return True
    return False


@dataclass(frozen=True)
class _RawLink:
    """A link pointer somewhere in the schema, as seen from its target."""

    source_id: Identifier
    source_name: str
    name: str
    target_id: Identifier
    is_singular: bool
    is_exclusive: bool


class _RawIndex:
    """Whole-snapshot index consulted while building individual records."""

    def __init__(self, records: Sequence[RawRecord]) -> None:
        self.by_id: Dict[Identifier, RawRecord] = {}
        for raw in records:
            name = raw.get("name")
            type_id = parse_identifier(_require(raw, "id", name), name)
            _require(raw, "name", str(type_id))
            if type_id in self.by_id:
                logger.warning(
                    f"Duplicate type id {type_id} ('{self.by_id[type_id].get('name')}' "
                    f"and '{name}'); keeping the later record"
                )
            self.by_id[type_id] = raw

        self.sequence_ids = {
            type_id
            for type_id, raw in self.by_id.items()
            if raw.get("kind") == TypeKind.SCALAR.value
            and SEQUENCE_MARKER in self.ancestor_names(raw)
        }

    def ancestor_names(self, raw: RawRecord) -> list[str]:
        names = []
        record_name = raw.get("name")
        for ancestor in _list(raw, "ancestors", record_name):
            if not isinstance(ancestor, Mapping):
                raise MalformedRecordError(
                    f"Entries of 'ancestors' in record '{record_name}' must be mappings",
                    record_name=record_name,
                    attribute="ancestors",
                )
            name = ancestor.get("name")
            if name is None and "id" in ancestor:
                known = self.by_id.get(parse_identifier(ancestor["id"], raw.get("name")))
                name = known.get("name") if known is not None else None
            if name is not None:
                names.append(name)
        return names

    def is_material_scalar(self, type_id: Identifier) -> bool:
        """Whether type_id is a non-abstract built-in scalar."""
        raw = self.by_id.get(type_id)
        if raw is None or raw.get("kind") != TypeKind.SCALAR.value:
            return False
        return (
            str(raw["name"]).startswith(MATERIAL_MODULE_PREFIXES)
            and not raw.get("is_abstract", False)
        )

    def find_object_id(self, name: str) -> Optional[Identifier]:
        for type_id, raw in self.by_id.items():
            if raw.get("kind") == TypeKind.OBJECT.value and raw["name"] == name:
                return type_id
        return None


class RecordNormalizer:
    """Converts a complete schema snapshot into a TypeRegistry.

    Attributes:
        supports_range_type: Whether the target server has range types;
            when False, range records are normalized as UnknownType
        numeric_mapping: Read-only map of numeric built-in id to the scalar
            it collapses onto
        canonical_type: Scalar every sequence (and numeric built-in) casts to
        constraint_resolver: Resolver for exclusive constraint targets

    Example:
        >>> normalizer = RecordNormalizer(supports_range_type=True)
        >>> registry = normalizer.normalize(raw_records)
        >>> registry.get(NUMBER_TYPE.id).name
        'std::number'
    """

    def __init__(
        self,
        supports_range_type: bool,
        numeric_mapping: Mapping[Identifier, ScalarType] = NUMERIC_TYPE_MAPPING,
        canonical_type: ScalarType = NUMBER_TYPE,
        constraint_resolver: Optional[ConstraintGroupResolver] = None,
    ) -> None:
        self.supports_range_type = supports_range_type
        self.numeric_mapping = numeric_mapping
        self.canonical_type = canonical_type
        self.constraint_resolver = constraint_resolver or ConstraintGroupResolver()

    def normalize(self, raw_records: RawRecords) -> TypeRegistry:
        """Normalize a full snapshot of raw records.

        Args:
            raw_records: JSON text or decoded list of raw records

        Returns:
            TypeRegistry in input order, canonical scalar appended if absent

        Raises:
            MalformedRecordError: If any record cannot be normalized
            UnknownReferenceError: If reverse-field stubs are needed but the
                schema has no std::BaseObject type
        """
        records = decode_raw_records(raw_records)
        index = _RawIndex(records)

        registry = TypeRegistry()
        for type_id, raw in index.by_id.items():
            registry.set(type_id, self._build_record(type_id, raw, index))

        self._attach_object_metadata(registry, index)
        self._remap(registry)

        logger.info(
            f"Normalized {len(registry)} types from {len(records)} raw records "
            f"(range types {'enabled' if self.supports_range_type else 'disabled'})"
        )
        return registry

    # Phase 1

    def _build_record(
        self,
        type_id: Identifier,
        raw: RawRecord,
        index: _RawIndex,
    ) -> TypeRecord:
        name = raw["name"]
        try:
            kind = TypeKind.from_str(_require(raw, "kind", name))
        except ValueError as e:
            raise MalformedRecordError(str(e), record_name=name, attribute="kind") from e

        is_abstract = bool(raw.get("is_abstract", False))

        if kind == TypeKind.SCALAR:
            return self._build_scalar(type_id, raw, index)
        if kind == TypeKind.OBJECT:
            return self._build_object(type_id, raw, index)
        if kind == TypeKind.ARRAY:
            return ArrayType(
                id=type_id,
                name=name,
                element_type_id=parse_identifier(
                    _require(raw, "array_element_id", name), name
                ),
                is_abstract=is_abstract,
            )
        if kind == TypeKind.TUPLE:
            return TupleType(
                id=type_id,
                name=name,
                elements=self._build_tuple_elements(raw),
                is_abstract=is_abstract,
            )
        if kind == TypeKind.RANGE:
            if not self.supports_range_type:
                return UnknownType(id=type_id, name=name)
            return RangeType(
                id=type_id,
                name=name,
                element_type_id=parse_identifier(
                    _require(raw, "range_element_id", name), name
                ),
                is_abstract=is_abstract,
            )
        if kind == TypeKind.UNKNOWN:
            return UnknownType(id=type_id, name=name)
        raise MalformedRecordError(
            f"Unhandled type kind '{kind.value}' for record '{name}'",
            record_name=name,
            attribute="kind",
        )

    def _build_scalar(
        self,
        type_id: Identifier,
        raw: RawRecord,
        index: _RawIndex,
    ) -> ScalarType:
        name = raw["name"]

        materialized_base_id = None
        for ancestor in _list(raw, "ancestors", name):
            if not isinstance(ancestor, Mapping):
                raise MalformedRecordError(
                    f"Entries of 'ancestors' in record '{name}' must be mappings",
                    record_name=name,
                    attribute="ancestors",
                )
            ancestor_id = parse_identifier(_require(ancestor, "id", name), name)
            if index.is_material_scalar(ancestor_id):
                materialized_base_id = ancestor_id
                break

        enum_values = raw.get("enum_values")
        return ScalarType(
            id=type_id,
            name=name,
            is_abstract=bool(raw.get("is_abstract", False)),
            is_sequence=type_id in index.sequence_ids,
            bases=_ref_ids(raw, "bases", name),
            enum_values=tuple(enum_values) if enum_values is not None else None,
            materialized_base_id=materialized_base_id,
        )

    def _build_object(
        self,
        type_id: Identifier,
        raw: RawRecord,
        index: _RawIndex,
    ) -> ObjectType:
        name = raw["name"]
        fields = tuple(
            self._build_field(pointer, name, index)
            for pointer in _list(raw, "pointers", name)
            if self._is_owned(pointer, name)
        )
        return ObjectType(
            id=type_id,
            name=name,
            is_abstract=bool(raw.get("is_abstract", False)),
            bases=_ref_ids(raw, "bases", name),
            union_members=_ref_ids(raw, "union_of", name),
            intersection_members=_ref_ids(raw, "intersection_of", name),
            fields=fields,
        )

    @staticmethod
    def _is_owned(pointer: Any, record_name: str) -> bool:
        if not isinstance(pointer, Mapping):
            raise MalformedRecordError(
                f"Entries of 'pointers' in record '{record_name}' must be mappings",
                record_name=record_name,
                attribute="pointers",
            )
        return bool(pointer.get("is_owned", True))

    def _build_field(
        self,
        raw_pointer: RawRecord,
        record_name: str,
        index: _RawIndex,
        nested: bool = False,
    ) -> FieldDef:
        name = _require(raw_pointer, "name", record_name)
        context = f"{record_name}.{name}"
        try:
            cardinality = Cardinality.from_raw(
                _require(raw_pointer, "cardinality", context),
                bool(_require(raw_pointer, "required", context)),
            )
            kind = FieldKind.from_str(_require(raw_pointer, "kind", context))
        except ValueError as e:
            raise MalformedRecordError(str(e), record_name=context) from e
        target_id = parse_identifier(_require(raw_pointer, "target_id", context), context)

        nested_fields = None
        if kind == FieldKind.REFERENCE and not nested:
            nested_fields = tuple(
                self._build_field(prop, context, index, nested=True)
                for prop in _list(raw_pointer, "pointers", context)
                if self._is_link_property(prop, context)
            )

        if nested and not name.startswith("@"):
            name = f"@{name}"

        return FieldDef(
            cardinality=cardinality,
            kind=kind,
            name=name,
            target_id=target_id,
            is_exclusive=_has_exclusive_constraint(raw_pointer, context),
            is_computed=bool(raw_pointer.get("is_computed", False)),
            is_readonly=bool(raw_pointer.get("is_readonly", False)),
            has_default=bool(raw_pointer.get("has_default", False))
            or target_id in index.sequence_ids,
            nested_fields=nested_fields,
        )

    @staticmethod
    def _is_link_property(prop: Any, context: str) -> bool:
        if not isinstance(prop, Mapping):
            raise MalformedRecordError(
                f"Link properties of '{context}' must be mappings",
                record_name=context,
                attribute="pointers",
            )
        return str(prop.get("name", "")).lstrip("@") not in IMPLICIT_LINK_PROPERTIES

    @staticmethod
    def _build_tuple_elements(raw: RawRecord) -> tuple[TupleElement, ...]:
        name = raw["name"]
        _require(raw, "tuple_elements", name)
        elements = []
        for element in _list(raw, "tuple_elements", name):
            if not isinstance(element, Mapping):
                raise MalformedRecordError(
                    f"Entries of 'tuple_elements' in record '{name}' must be mappings",
                    record_name=name,
                    attribute="tuple_elements",
                )
            elements.append(
                TupleElement(
                    name=element.get("name") or None,
                    target_id=parse_identifier(_require(element, "target_id", name), name),
                )
            )
        return tuple(elements)

    # Phase 2

    def _collect_links(self, index: _RawIndex) -> Dict[Identifier, List[_RawLink]]:
        """Index every link in the schema (owned or inherited) by target id."""
        links: Dict[Identifier, List[_RawLink]] = {}
        for source_id, raw in index.by_id.items():
            if raw.get("kind") != TypeKind.OBJECT.value:
                continue
            source_name = raw["name"]
            for pointer in _list(raw, "pointers", source_name):
                if not isinstance(pointer, Mapping):
                    continue
                if pointer.get("kind") != FieldKind.REFERENCE.value:
                    continue
                link_name = _require(pointer, "name", source_name)
                context = f"{source_name}.{link_name}"
                target_id = parse_identifier(_require(pointer, "target_id", context), context)
                link = _RawLink(
                    source_id=source_id,
                    source_name=source_name,
                    name=link_name,
                    target_id=target_id,
                    is_singular=pointer.get("cardinality") == "One",
                    is_exclusive=_has_exclusive_constraint(pointer, context),
                )
                links.setdefault(target_id, []).append(link)
        return links

    def _attach_object_metadata(self, registry: TypeRegistry, index: _RawIndex) -> None:
        links_by_target = self._collect_links(index)
        base_object_id = index.find_object_id(BASE_OBJECT_NAME)

        for type_id, record in list(registry.items()):
            if not isinstance(record, ObjectType):
                continue

            incoming = links_by_target.get(type_id, [])
            reverse_fields = tuple(self._reverse_field(link) for link in incoming)

            stub_names: List[str] = []
            for link in incoming:
                if link.name not in stub_names:
                    stub_names.append(link.name)
            if stub_names and base_object_id is None:
                raise UnknownReferenceError(BASE_OBJECT_NAME, referrer=record.name)
            stubs = tuple(
                ReverseFieldDef(
                    cardinality=Cardinality.MANY,
                    kind=FieldKind.REFERENCE,
                    name=f"<{stub}",
                    target_id=base_object_id,
                    source_field_name=stub,
                )
                for stub in stub_names
            )

            groups = self.constraint_resolver.resolve(
                record, _list(index.by_id[type_id], "exclusives", record.name)
            )

            registry.set(
                type_id,
                replace(
                    record,
                    reverse_fields=reverse_fields,
                    reverse_field_stubs=stubs,
                    exclusivity_groups=groups,
                ),
            )

    @staticmethod
    def _reverse_field(link: _RawLink) -> ReverseFieldDef:
        exclusive = link.is_exclusive and link.is_singular
        return ReverseFieldDef(
            cardinality=Cardinality.AT_MOST_ONE if exclusive else Cardinality.MANY,
            kind=FieldKind.REFERENCE,
            name=f"<{link.name}[is {_strip_default_module(link.source_name)}]",
            target_id=link.source_id,
            is_exclusive=exclusive,
            source_field_name=link.name,
        )

    # Phase 3

    def _remap(self, registry: TypeRegistry) -> None:
        canonical_id = self.canonical_type.id
        for type_id, record in list(registry.items()):
            if isinstance(record, ScalarType):
                cast_target = None
                if type_id in self.numeric_mapping:
                    cast_target = self.numeric_mapping[type_id].id
                if record.is_sequence:
                    cast_target = canonical_id
                if cast_target is not None and cast_target != type_id:
                    logger.debug(f"Casting scalar '{record.name}' to {cast_target}")
                    registry.set(type_id, replace(record, cast_target=cast_target))
            elif isinstance(record, RangeType):
                mapped = self.numeric_mapping.get(record.element_type_id)
                if mapped is not None:
                    registry.set(type_id, replace(record, element_type_id=mapped.id))

        for scalar in _distinct_scalars([self.canonical_type, *self.numeric_mapping.values()]):
            if not registry.has(scalar.id):
                registry.set(scalar.id, scalar)


def _distinct_scalars(scalars: Iterable[ScalarType]) -> List[ScalarType]:
    seen = set()
    result = []
    for scalar in scalars:
        if scalar.id not in seen:
            seen.add(scalar.id)
            result.append(scalar)
    return result


def normalize_types(
    raw_records: RawRecords,
    *,
    supports_range_type: bool,
    strict_constraints: bool = False,
) -> TypeRegistry:
    """Normalize a schema snapshot with the default numeric mapping.

    Args:
        raw_records: JSON text or decoded list of raw records
        supports_range_type: Whether range records are modelled
        strict_constraints: Raise on unresolvable composite constraints

    Returns:
        Unordered (input-ordered) TypeRegistry
    """
    normalizer = RecordNormalizer(
        supports_range_type=supports_range_type,
        constraint_resolver=ConstraintGroupResolver(strict=strict_constraints),
    )
    return normalizer.normalize(raw_records)
