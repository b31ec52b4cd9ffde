"""
Exclusive constraint resolution for object types.

Introspection reports each std::exclusive constraint of an object type as a
free-form target: either the name of a single field, or a parenthesized
subject expression listing several fields, e.g. ``(.first_name .last_name,)``.
This module turns those targets into exclusivity groups: mappings from field
name to the type's own FieldDef.

Invariants:
    - Groups reference only fields owned by the same object type
    - A composite group is emitted whole or not at all
    - Groups are not deduplicated; equal descriptors give equal groups
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional

from ..errors import MalformedConstraintExpressionError, MalformedRecordError
from .types import FieldDef, ObjectType

logger = logging.getLogger(__name__)


def parse_constraint_target(target: str) -> Optional[list[str]]:
    """Split a parenthesized constraint target into member field names.

    Args:
        target: Raw constraint target

    Returns:
        Member names for a parenthesized target, None otherwise

    Example:
        >>> parse_constraint_target("(.first_name .last_name,)")
        ['first_name', 'last_name']
        >>> parse_constraint_target("email") is None
        True
    """
    if len(target) < 2 or target[0] != "(" or target[-1] != ")":
        return None

    names = []
    for token in target[1:-1].split():
        if token.startswith("."):
            token = token[1:]
        if token.endswith(","):
            token = token[:-1]
        if token:
            names.append(token)
    return names


class ConstraintGroupResolver:
    """Resolves raw exclusive constraint descriptors into exclusivity groups.

    Attributes:
        strict: Raise on composite targets with unresolved members instead
            of dropping the group

    Example:
        >>> resolver = ConstraintGroupResolver()
        >>> groups = resolver.resolve(Person, [{"target": "(.first .last,)"}])
        >>> sorted(groups[0])
        ['first', 'last']
    """

    def __init__(self, strict: bool = False) -> None:
        self.strict = strict

    def resolve(
        self,
        object_type: ObjectType,
        raw_exclusives: Iterable[Mapping[str, Any]],
    ) -> tuple[Mapping[str, FieldDef], ...]:
        """Build the exclusivity groups of one object type.

        Args:
            object_type: Object type whose owned fields are candidates
            raw_exclusives: Descriptors, each with a 'target' string

        Returns:
            Tuple of groups in descriptor order

        Raises:
            MalformedRecordError: If a descriptor has no string target
            MalformedConstraintExpressionError: If strict and a composite
                target names fields the type does not own
        """
        owned = {f.name: f for f in object_type.fields}
        groups: list[Mapping[str, FieldDef]] = []

        for raw in raw_exclusives:
            target = raw.get("target") if isinstance(raw, Mapping) else None
            if not isinstance(target, str):
                raise MalformedRecordError(
                    f"Exclusive constraint on '{object_type.name}' has no target",
                    record_name=object_type.name,
                    attribute="exclusives.target",
                )

            if target in owned:
                groups.append(MappingProxyType({target: owned[target]}))

            members = parse_constraint_target(target)
            if members is None:
                continue

            unresolved = [name for name in members if name not in owned]
            if unresolved or not members:
                if self.strict:
                    raise MalformedConstraintExpressionError(
                        object_type.name, target, unresolved
                    )
                logger.debug(
                    f"Dropping exclusive constraint {target!r} on "
                    f"'{object_type.name}': unresolved fields {unresolved}"
                )
                continue

            groups.append(MappingProxyType({name: owned[name] for name in members}))

        return tuple(groups)
