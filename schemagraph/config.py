"""
Configuration for schemagraph.

All settings come from environment variables prefixed ``SCHEMAGRAPH_`` and
have defaults matching the historical, tolerant behavior.

Invariants:
    - Defaults never make a previously accepted schema fail
    - Strictness toggles only add failures, never remove them
"""

from __future__ import annotations

import logging
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings


class ReflectionSettings(BaseSettings):
    """Type graph construction settings."""

    # Raise MalformedConstraintExpressionError instead of dropping composite
    # exclusive constraints that name fields the type does not own
    strict_constraints: bool = Field(default=False)

    # Require every field target / element / cast id to resolve, not only bases
    strict_targets: bool = Field(default=False)

    # Log the decoded raw records at DEBUG level before normalizing
    debug_dump: bool = Field(default=False)

    log_level: str = Field(default="INFO")
    log_format: str = Field(default="text", description="Log format (text, json)")

    model_config = {"env_prefix": "SCHEMAGRAPH_"}


@lru_cache
def get_settings() -> ReflectionSettings:
    """Get the process-wide settings, read once from the environment."""
    return ReflectionSettings()


def setup_logging(settings: ReflectionSettings) -> None:
    """Configure root logging based on settings.

    Args:
        settings: Reflection settings
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    if settings.log_format == "json":
        formatter = logging.Formatter(
            '{"time":"%(asctime)s","level":"%(levelname)s","logger":"%(name)s","message":"%(message)s"}'
        )
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]
