"""Reversible escaping of arbitrary strings into legal filenames."""

from .core import RuleSet, Violation, encoded_length, escape, find_violations, is_allowed, is_legal, unescape
from .errors import ConfigurationError, FilesanError, LengthError, MalformedEscapeError

__version__ = "0.1.0"

__all__ = [
    "ConfigurationError",
    "FilesanError",
    "LengthError",
    "MalformedEscapeError",
    "RuleSet",
    "Violation",
    "encoded_length",
    "escape",
    "find_violations",
    "is_allowed",
    "is_legal",
    "unescape",
]
