"""Error taxonomy and exit code mapping for callers of the escape engine."""

from __future__ import annotations

from typing import Optional


class FilesanError(Exception):
    """Base error with a deterministic exit code."""

    exit_code: int = 1


class ConfigurationError(FilesanError, ValueError):
    """Invalid rule set or settings."""

    exit_code = 2


class LengthError(FilesanError, ValueError):
    """Escaped component would exceed the rule set's maximum length."""

    exit_code = 4

    def __init__(self, length: int, max_len: int, rule_set: str = "") -> None:
        self.length = length
        self.max_len = max_len
        self.rule_set = rule_set
        label = f" ({rule_set})" if rule_set else ""
        super().__init__(
            f"Escaped name is {length} bytes, exceeds max_len={max_len}{label}"
        )


class MalformedEscapeError(FilesanError, ValueError):
    """Input to unescape was not produced by escape under the given rules."""

    exit_code = 5

    def __init__(self, message: str, escaped: str, position: Optional[int] = None) -> None:
        self.escaped = escaped
        self.position = position
        if position is not None:
            message = f"{message} at position {position}"
        super().__init__(f"{message}: {escaped!r}")


def exit_code_for_exception(exc: BaseException) -> int:
    """Resolve a deterministic exit code for an exception."""
    if isinstance(exc, FilesanError):
        return exc.exit_code
    if isinstance(exc, OSError):
        return 3
    return FilesanError.exit_code
