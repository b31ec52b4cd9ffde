"""Command-line tools for schemagraph."""

from .schema_cli import SchemaGraphCLI, main

__all__ = ["SchemaGraphCLI", "main"]
