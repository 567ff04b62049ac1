"""Utility functions."""

from .helpers import (
    setup_logging,
    setup_logging_from_config,
    format_metrics,
    round_half_up,
    safe_divide,
    slugify,
    timestamp_ms,
)

__all__ = [
    "setup_logging",
    "setup_logging_from_config",
    "format_metrics",
    "round_half_up",
    "safe_divide",
    "slugify",
    "timestamp_ms",
]
