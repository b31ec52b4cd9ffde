"""
Error types for schemagraph.

This module defines all exception types raised while building a type graph:
- SchemaGraphError: Base exception
- NotFoundError: Registry lookup for an unknown id or name
- RegistryFrozenError: Mutation of a frozen registry
- MalformedRecordError: Raw record missing or mistyping a required attribute
- UnknownReferenceError: Base or target id that resolves to nothing
- DependencyCycleError: Cycle in the base-type graph
- MalformedConstraintExpressionError: Unresolvable exclusive constraint target

Invariants:
    - All errors inherit from SchemaGraphError
    - Errors are fatal at the package boundary (no partial results)
    - Errors include context for debugging
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class SchemaGraphError(Exception):
    """Base exception for all schemagraph errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "SCHEMAGRAPH_ERROR"
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


class NotFoundError(SchemaGraphError, KeyError):
    """Registry lookup for a key that was never set."""

    def __init__(self, key: Any) -> None:
        super().__init__(
            f"No type registered for {key!r}",
            code="NOT_FOUND",
            details={"key": str(key)},
        )
        self.key = key


class RegistryFrozenError(SchemaGraphError):
    """Raised when attempting to modify a frozen registry."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="REGISTRY_FROZEN")


class MalformedRecordError(SchemaGraphError):
    """A raw record cannot be normalized.

    Raised when:
    - A required attribute for the record's variant is missing
    - An id is not a valid UUID
    - A discriminator, cardinality or pointer kind is not recognized

    Attributes:
        record_name: Name (or id) of the offending record, if known
        attribute: The missing or invalid attribute, if known
    """

    def __init__(
        self,
        message: str,
        record_name: Optional[str] = None,
        attribute: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code="MALFORMED_RECORD",
            details={"record": record_name, "attribute": attribute},
        )
        self.record_name = record_name
        self.attribute = attribute


class UnknownReferenceError(SchemaGraphError):
    """An id referenced by a record does not resolve to any registered type.

    Attributes:
        reference: The dangling id (or well-known name)
        referrer: Name of the type holding the reference
    """

    def __init__(self, reference: Any, referrer: Optional[str] = None) -> None:
        msg = f"Reference to an unknown type: {reference}"
        if referrer:
            msg += f" (from '{referrer}')"
        super().__init__(
            msg,
            code="UNKNOWN_REFERENCE",
            details={"reference": str(reference), "referrer": referrer},
        )
        self.reference = reference
        self.referrer = referrer


class DependencyCycleError(SchemaGraphError):
    """The base-type graph contains a cycle.

    Only the edge that closed the cycle is reported, not the full cycle.

    Attributes:
        type_name: The type that was re-entered
        other_name: The type on the active path that points back to it
    """

    def __init__(self, type_name: str, other_name: str) -> None:
        super().__init__(
            f"Dependency cycle between {type_name} and {other_name}",
            code="DEPENDENCY_CYCLE",
            details={"types": [type_name, other_name]},
        )
        self.type_name = type_name
        self.other_name = other_name


class MalformedConstraintExpressionError(SchemaGraphError):
    """An exclusive constraint target names fields the type does not own.

    Only raised when strict constraint resolution is enabled; by default
    such groups are dropped.

    Attributes:
        type_name: Object type carrying the constraint
        target: The raw constraint target expression
        unresolved: Member names that did not resolve
    """

    def __init__(
        self,
        type_name: str,
        target: str,
        unresolved: Optional[List[str]] = None,
    ) -> None:
        unresolved = unresolved or []
        super().__init__(
            f"Exclusive constraint '{target}' on '{type_name}' references "
            f"unknown fields: {', '.join(unresolved)}",
            code="MALFORMED_CONSTRAINT",
            details={
                "type_name": type_name,
                "target": target,
                "unresolved": unresolved,
            },
        )
        self.type_name = type_name
        self.target = target
        self.unresolved = unresolved
