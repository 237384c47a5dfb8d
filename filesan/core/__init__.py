"""Rule tables and the escape engine."""

from .escape import Violation, encoded_length, escape, find_violations, is_allowed, is_legal, unescape
from .rules import RuleSet

__all__ = [
    "RuleSet",
    "Violation",
    "encoded_length",
    "escape",
    "find_violations",
    "is_allowed",
    "is_legal",
    "unescape",
]
