"""
Type Registry for reflected schemas.

The TypeRegistry is the insertion-ordered, lookup-strict container every
pass reads from and writes to. It provides:
- Insert-or-overwrite by type id, keeping first-insertion position
- Strict lookup by id (or name) that raises instead of returning None
- Schema fingerprinting for reproducibility checks
- Freeze mechanism so an ordered graph cannot change after ordering

Invariants:
    - Iteration order is insertion order and is never re-sorted in place
    - Overwriting a key keeps the key's original position
    - Once frozen, no records can be set
    - Fingerprint is computed from the registry's own order

How to change safely:
    - Build a new registry to reorder; never reorder an existing one
    - Freeze only the final, ordered registry

Example:
    >>> registry = TypeRegistry()
    >>> registry.set(NUMBER_TYPE.id, NUMBER_TYPE)
    >>> registry.get(NUMBER_TYPE.id).name
    'std::number'
    >>> registry.freeze()
    'sha256:...'
"""

from __future__ import annotations

import hashlib
import json
import logging
from typing import Dict, Iterable, Iterator, Optional, Tuple

from ..errors import NotFoundError, RegistryFrozenError
from .types import Identifier, TypeRecord

logger = logging.getLogger(__name__)


class TypeRegistry:
    """Ordered map of type id to TypeRecord.

    Attributes:
        frozen: Whether the registry is frozen (immutable)
        fingerprint: SHA-256 hash of the registry (computed on freeze)
    """

    def __init__(self, records: Optional[Iterable[TypeRecord]] = None) -> None:
        """Initialize a mutable registry, optionally seeded with records."""
        self._types: Dict[Identifier, TypeRecord] = {}
        self._frozen = False
        self._fingerprint: Optional[str] = None
        for record in records or ():
            self.set(record.id, record)

    @property
    def frozen(self) -> bool:
        """Whether the registry is frozen."""
        return self._frozen

    @property
    def fingerprint(self) -> Optional[str]:
        """Registry fingerprint (available after freeze)."""
        return self._fingerprint

    def set(self, type_id: Identifier, record: TypeRecord) -> None:
        """Insert or overwrite the record for type_id.

        Args:
            type_id: Key to store the record under
            record: The type record

        Raises:
            RegistryFrozenError: If registry is frozen
        """
        if self._frozen:
            raise RegistryFrozenError(
                f"Cannot set type '{record.name}': registry is frozen"
            )
        self._types[type_id] = record

    def get(self, type_id: Identifier) -> TypeRecord:
        """Get a record by id.

        Raises:
            NotFoundError: If no record is registered under type_id
        """
        try:
            return self._types[type_id]
        except KeyError:
            raise NotFoundError(type_id) from None

    def get_by_name(self, name: str) -> TypeRecord:
        """Get a record by fully-qualified name.

        Raises:
            NotFoundError: If no record has that name
        """
        for record in self._types.values():
            if record.name == name:
                return record
        raise NotFoundError(name)

    def has(self, type_id: Identifier) -> bool:
        """Whether a record is registered under type_id."""
        return type_id in self._types

    def __contains__(self, type_id: object) -> bool:
        return type_id in self._types

    def __iter__(self) -> Iterator[Identifier]:
        return iter(self._types)

    def __len__(self) -> int:
        return len(self._types)

    def keys(self) -> Iterator[Identifier]:
        yield from self._types.keys()

    def values(self) -> Iterator[TypeRecord]:
        yield from self._types.values()

    def items(self) -> Iterator[Tuple[Identifier, TypeRecord]]:
        yield from self._types.items()

    def freeze(self) -> str:
        """Freeze the registry and compute fingerprint.

        Returns:
            Fingerprint string in format 'sha256:<hash>'

        Raises:
            RegistryFrozenError: If already frozen
        """
        if self._frozen:
            raise RegistryFrozenError("Registry is already frozen")

        self._fingerprint = self._compute_fingerprint()
        self._frozen = True
        logger.info(
            f"Type registry frozen with {len(self._types)} types, "
            f"fingerprint={self._fingerprint}"
        )
        return self._fingerprint

    def _compute_fingerprint(self) -> str:
        """Compute SHA-256 fingerprint of the registry.

        Unlike a sorted snapshot, the order of records is part of the
        fingerprint: two registries with equal content but different
        dependency orders fingerprint differently.
        """
        canonical = json.dumps(self.to_dict(), sort_keys=True, separators=(',', ':'))
        hash_bytes = hashlib.sha256(canonical.encode('utf-8')).hexdigest()
        return f"sha256:{hash_bytes}"

    def to_dict(self) -> dict:
        """Convert registry to dictionary representation.

        Returns:
            Dictionary with a 'types' list in registry order
        """
        return {"types": [record.to_dict() for record in self._types.values()]}

    def to_json(self, indent: Optional[int] = 2) -> str:
        """Convert registry to JSON string."""
        return json.dumps(self.to_dict(), indent=indent, sort_keys=True)

    def __repr__(self) -> str:
        state = "frozen" if self._frozen else "mutable"
        return f"TypeRegistry({len(self._types)} types, {state})"
