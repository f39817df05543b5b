"""Utility functions for pipeline artifact handling."""

from .digest import calculate_digest, validate_digest, verify_digest
from .paths import resolve_within

__all__ = ["calculate_digest", "validate_digest", "verify_digest", "resolve_within"]
