"""Test helper utilities."""

from .names import AWKWARD_NAMES, names_for

__all__ = [
    "AWKWARD_NAMES",
    "names_for",
]
