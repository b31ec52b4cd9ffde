"""
schemagraph Test Suite.

This package contains:
- unit/: Unit tests (no external services; schema dumps are built in-process)
"""
