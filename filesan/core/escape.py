"""Reversible escaping of strings into legal path components.

Escaping is a single left-to-right scan followed by a reserved-name fix-up:

1. Every character that is the escape character, a forbidden character, or a
   forbidden trailing character in last position is replaced by the escape
   character plus a fixed number of upper-case hex digits of its code point
   (``:`` -> ``%003A`` with the default ``%`` and width 4).
2. If the scanned result is a reserved component (``..``) or its base name is
   a reserved name (``CON``, ``con.txt``), its first character is replaced by
   its escape sequence (``CON`` -> ``%0043ON``). Extensions are kept verbatim.
3. The result must fit in ``max_len`` UTF-8 bytes or ``LengthError`` is
   raised. Names are never truncated.

Unescaping decodes every sequence, which also reverses the fix-up, and then
re-escapes the result: anything that does not reproduce the input exactly was
not produced by ``escape`` under these rules and is rejected.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from filesan.core.rules import HEX_DIGITS, SURROGATES, RuleSet
from filesan.errors import LengthError, MalformedEscapeError

logger = logging.getLogger(__name__)

_MAX_CODE_POINT = 0x10FFFF


def _resolve(rules: Optional[RuleSet]) -> RuleSet:
    if rules is not None:
        return rules
    from filesan.settings import default_rules

    return default_rules()


def encoded_length(name: str) -> int:
    """Length of ``name`` in the unit ``max_len`` is measured in (UTF-8 bytes)."""
    return len(name.encode("utf-8", errors="surrogatepass"))


def is_allowed(char: str, rules: Optional[RuleSet] = None) -> bool:
    """Whether ``char`` may appear literally anywhere in an escaped name."""
    rules = _resolve(rules)
    return char != rules.escape_char and char not in rules.forbidden_chars


def escape(original: str, rules: Optional[RuleSet] = None) -> str:
    """Escape ``original`` into a legal path component under ``rules``.

    Args:
        original: Any string; the empty string maps to itself
        rules: Rule set to apply; defaults to the configured rule set

    Returns:
        Escaped component, guaranteed legal under ``rules``

    Raises:
        LengthError: The escaped result exceeds ``rules.max_len`` bytes
    """
    rules = _resolve(rules)
    escaped = _escape_unchecked(original, rules)
    length = encoded_length(escaped)
    if length > rules.max_len:
        logger.debug("Escaped name exceeds %s bytes under %s rules: %d", rules.max_len, rules.name, length)
        raise LengthError(length, rules.max_len, rules.name)
    return escaped


def _escape_unchecked(original: str, rules: RuleSet) -> str:
    esc = rules.escape_char
    forbidden = rules.forbidden_chars
    last = len(original) - 1
    parts = []
    for index, char in enumerate(original):
        if char == esc or char in forbidden or (index == last and char in rules.forbid_trailing):
            parts.append(rules.escape_sequence(char))
        else:
            parts.append(char)
    escaped = "".join(parts)

    if escaped and rules.is_reserved(escaped):
        logger.debug("Escaping first character of reserved name %r (%s rules)", escaped, rules.name)
        escaped = rules.escape_sequence(escaped[0]) + escaped[1:]
    return escaped


def unescape(escaped: str, rules: Optional[RuleSet] = None) -> str:
    """Recover the original string from the output of ``escape``.

    Raises:
        MalformedEscapeError: ``escaped`` contains an invalid escape sequence,
            or is not exactly what ``escape`` produces under ``rules``
    """
    rules = _resolve(rules)
    decoded = _decode(escaped, rules)

    # Only the canonical escaping of ``decoded`` is accepted.
    try:
        canonical = escape(decoded, rules)
    except LengthError as exc:
        raise MalformedEscapeError(
            f"Name exceeds max_len={rules.max_len} under {rules.name} rules", escaped
        ) from exc
    if canonical != escaped:
        position = _first_difference(canonical, escaped)
        logger.debug("Non-canonical escaped name %r, expected %r", escaped, canonical)
        raise MalformedEscapeError(
            f"Name is not a valid escaping under {rules.name} rules", escaped, position
        )
    return decoded


def _decode(escaped: str, rules: RuleSet) -> str:
    esc = rules.escape_char
    width = rules.escape_width
    parts = []
    index = 0
    end = len(escaped)
    while index < end:
        char = escaped[index]
        if char != esc:
            parts.append(char)
            index += 1
            continue
        field = escaped[index + 1 : index + 1 + width]
        if len(field) < width:
            raise MalformedEscapeError(
                f"Truncated escape sequence, expected {width} hex digits", escaped, index
            )
        if not all(digit in HEX_DIGITS for digit in field):
            raise MalformedEscapeError(f"Invalid escape sequence {esc}{field}", escaped, index)
        code = int(field, 16)
        if code > _MAX_CODE_POINT or code in SURROGATES:
            raise MalformedEscapeError(
                f"Escape sequence {esc}{field} is not a Unicode scalar value", escaped, index
            )
        parts.append(chr(code))
        index += 1 + width
    return "".join(parts)


def _first_difference(left: str, right: str) -> int:
    for index, (a, b) in enumerate(zip(left, right)):
        if a != b:
            return index
    return min(len(left), len(right))


@dataclass(frozen=True)
class Violation:
    """One reason a name is not a legal component as-is."""

    kind: str
    position: Optional[int]
    detail: str


def find_violations(name: str, rules: Optional[RuleSet] = None) -> list[Violation]:
    """List every way ``name`` breaks ``rules`` if used literally.

    Kinds: ``forbidden_char``, ``trailing_char``, ``reserved_component``,
    ``reserved_name``, ``too_long``. An empty list means the target OS
    accepts the name unchanged; ``escape`` still rewrites any escape
    characters it contains.
    """
    rules = _resolve(rules)
    violations: list[Violation] = []
    for index, char in enumerate(name):
        if char in rules.forbidden_chars:
            violations.append(Violation("forbidden_char", index, f"U+{ord(char):04X} is forbidden"))
    if name and name[-1] in rules.forbid_trailing:
        violations.append(
            Violation("trailing_char", len(name) - 1, f"U+{ord(name[-1]):04X} may not end a name")
        )
    if name in rules.reserved_components:
        violations.append(Violation("reserved_component", 0, f"{name!r} is reserved"))
    elif rules.is_reserved(name):
        base = name.split(".", 1)[0]
        violations.append(Violation("reserved_name", 0, f"{base!r} is a reserved device name"))
    length = encoded_length(name)
    if length > rules.max_len:
        violations.append(Violation("too_long", None, f"{length} bytes exceeds {rules.max_len}"))
    return violations


def is_legal(name: str, rules: Optional[RuleSet] = None) -> bool:
    """Whether ``name`` is a legal component under ``rules`` without escaping."""
    return not find_violations(name, rules)
