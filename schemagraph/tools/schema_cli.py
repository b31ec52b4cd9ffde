"""
Schema graph CLI tool.

This tool inspects a saved schema dump (the JSON returned by schema
introspection) without generating any code:
- order: Print the types in dependency order
- fingerprint: Print the fingerprint of the ordered graph

Usage:
    schemagraph order schema.json
    schemagraph order schema.json --format json
    schemagraph fingerprint schema.json --no-range

Invariants:
    - Any schemagraph error exits with code 1 and a one-line message
    - Output is deterministic for an unchanged dump
"""

from __future__ import annotations

import argparse
import sys
from typing import List, Optional

from ..config import get_settings, setup_logging
from ..errors import SchemaGraphError
from ..reflection import TypeRegistry, build_type_graph


class SchemaGraphCLI:
    """CLI commands over a schema dump file.

    Example:
        >>> cli = SchemaGraphCLI()
        >>> print(cli.order("schema.json"))
    """

    def __init__(self, supports_range_type: bool = True) -> None:
        self.supports_range_type = supports_range_type

    def load(self, path: str) -> TypeRegistry:
        """Build the ordered graph for a dump file."""
        with open(path) as f:
            payload = f.read()
        return build_type_graph(
            payload,
            supports_range_type=self.supports_range_type,
            settings=get_settings(),
        )

    def order(self, path: str, output_format: str = "text") -> str:
        """Render the ordered types.

        Args:
            path: Path to the schema dump
            output_format: "text" for one "kind name" line per type,
                "json" for the full graph

        Returns:
            Rendered output
        """
        graph = self.load(path)
        if output_format == "json":
            return graph.to_json()
        return "\n".join(f"{record.kind.value:<8} {record.name}" for record in graph.values())

    def fingerprint(self, path: str) -> str:
        """Return the fingerprint of the ordered graph."""
        graph = self.load(path)
        return graph.fingerprint or ""


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point for the schema graph tool."""
    parser = argparse.ArgumentParser(description="Schema type graph tool")
    subparsers = parser.add_subparsers(dest="command", required=True)

    order_parser = subparsers.add_parser("order", help="Print types in dependency order")
    order_parser.add_argument("file", help="Path to schema dump JSON")
    order_parser.add_argument(
        "--format", choices=["text", "json"], default="text", help="Output format"
    )
    order_parser.add_argument(
        "--no-range", action="store_true", help="Treat range types as unknown"
    )

    fingerprint_parser = subparsers.add_parser(
        "fingerprint", help="Print the ordered graph fingerprint"
    )
    fingerprint_parser.add_argument("file", help="Path to schema dump JSON")
    fingerprint_parser.add_argument(
        "--no-range", action="store_true", help="Treat range types as unknown"
    )

    args = parser.parse_args(argv)
    setup_logging(get_settings())
    cli = SchemaGraphCLI(supports_range_type=not args.no_range)

    try:
        if args.command == "order":
            print(cli.order(args.file, args.format))
        elif args.command == "fingerprint":
            print(cli.fingerprint(args.file))
    except SchemaGraphError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"Error: cannot read {args.file}: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
