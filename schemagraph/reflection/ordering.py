"""
Dependency ordering of normalized type records.

The GraphOrderer produces a new, frozen TypeRegistry in which every base type
precedes the types that declare it as a base. Only object and scalar records
carry base edges; other variants keep their position among the roots.

Invariants:
    - The input registry is never reordered or mutated
    - Every base id is validated before traversal starts
    - Roots are visited in input order, so ties are stable across runs
    - Traversal uses an explicit stack; inheritance depth is not bounded by
      the interpreter's recursion limit
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Iterator, List, Set, Tuple, Union

from ..errors import DependencyCycleError, UnknownReferenceError
from .registry import TypeRegistry
from .types import Identifier, ObjectType, ScalarType, TypeRecord

logger = logging.getLogger(__name__)


class GraphOrderer:
    """Topologically sorts type records by their base edges.

    Attributes:
        strict_targets: Also require every non-base reference (field
            targets, element types, cast targets, ...) to resolve

    Example:
        >>> ordered = GraphOrderer().order(registry)
        >>> ordered.frozen
        True
    """

    def __init__(self, strict_targets: bool = False) -> None:
        self.strict_targets = strict_targets

    def order(self, registry: TypeRegistry) -> TypeRegistry:
        """Return a frozen registry in dependency order.

        Args:
            registry: Normalized registry (left untouched)

        Returns:
            New frozen TypeRegistry with bases before derived types

        Raises:
            UnknownReferenceError: If a base id (or, when strict, any
                referenced id) is not in the registry
            DependencyCycleError: If the base graph has a cycle
        """
        adjacency = self._build_adjacency(registry)
        if self.strict_targets:
            self._check_targets(registry)

        visited: Set[Identifier] = set()
        ordered = TypeRegistry()

        for root_id in registry:
            if root_id in visited:
                continue

            on_path: Set[Identifier] = {root_id}
            stack: List[Tuple[Identifier, Iterator[Identifier]]] = [
                (root_id, iter(adjacency.get(root_id, ())))
            ]
            while stack:
                type_id, pending = stack[-1]
                for base_id in pending:
                    if base_id in visited:
                        continue
                    if base_id in on_path:
                        raise DependencyCycleError(
                            registry.get(base_id).name, registry.get(type_id).name
                        )
                    on_path.add(base_id)
                    stack.append((base_id, iter(adjacency.get(base_id, ()))))
                    break
                else:
                    stack.pop()
                    on_path.discard(type_id)
                    visited.add(type_id)
                    ordered.set(type_id, registry.get(type_id))

        ordered.freeze()
        logger.info(f"Ordered {len(ordered)} types by base dependencies")
        return ordered

    @staticmethod
    def _build_adjacency(registry: TypeRegistry) -> Dict[Identifier, List[Identifier]]:
        adjacency: Dict[Identifier, List[Identifier]] = {}
        for type_id, record in registry.items():
            if not isinstance(record, (ObjectType, ScalarType)):
                continue
            for base_id in record.base_ids:
                if not registry.has(base_id):
                    raise UnknownReferenceError(base_id, referrer=record.name)
                bases = adjacency.setdefault(type_id, [])
                if base_id not in bases:
                    bases.append(base_id)
        return adjacency

    @staticmethod
    def _check_targets(registry: TypeRegistry) -> None:
        for record in registry.values():
            for ref_id in record.referenced_ids():
                if not registry.has(ref_id):
                    raise UnknownReferenceError(ref_id, referrer=record.name)


def topo_sort(
    types: Union[TypeRegistry, Iterable[TypeRecord]],
    *,
    strict_targets: bool = False,
) -> TypeRegistry:
    """Order type records so bases come first.

    Args:
        types: A registry, or records in their input order
        strict_targets: Also validate non-base references

    Returns:
        New frozen TypeRegistry in dependency order
    """
    registry = types if isinstance(types, TypeRegistry) else TypeRegistry(types)
    return GraphOrderer(strict_targets=strict_targets).order(registry)
