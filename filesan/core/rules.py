"""Per-OS rule tables for filename escaping.

A ``RuleSet`` is a frozen value describing what one target environment
forbids in a single path component:

- characters that may never appear literally (``forbidden_chars``)
- base names reserved case-insensitively (``reserved_names``, Windows devices)
- whole components reserved exactly (``reserved_components``, ``.`` and ``..``)
- characters that may not end a component (``forbid_trailing``)
- the maximum component length, counted in UTF-8 bytes (``max_len``)
- the escape character and the number of hex digits following it

Lengths are always UTF-8 bytes. A UTF-8 byte count is never smaller than the
code point or UTF-16 unit count, so a limit that holds in bytes holds on both
POSIX and Windows filesystems.
"""

from __future__ import annotations

import hashlib
import json
import sys
from dataclasses import dataclass
from typing import Iterable, Optional, Union

from filesan.errors import ConfigurationError


DEFAULT_ESCAPE_CHAR = "%"
DEFAULT_ESCAPE_WIDTH = 4
DEFAULT_MAX_LEN = 255

MIN_ESCAPE_WIDTH = 2
MAX_ESCAPE_WIDTH = 6

HEX_DIGITS = frozenset("0123456789ABCDEF")
SURROGATES = range(0xD800, 0xE000)

# Control range plus the characters the Win32 API rejects in names.
WINDOWS_FORBIDDEN = frozenset(chr(code) for code in range(0x20)) | frozenset('<>:"/\\|?*')
WINDOWS_TRAILING = frozenset(". ")
WINDOWS_RESERVED = frozenset(
    ["CON", "PRN", "AUX", "NUL"]
    + [f"COM{n}" for n in range(1, 10)]
    + [f"LPT{n}" for n in range(1, 10)]
)

POSIX_FORBIDDEN = frozenset("\x00/")
POSIX_RESERVED_COMPONENTS = frozenset([".", ".."])

# HFS+ and the Finder still treat ':' as the path separator.
MAC_FORBIDDEN = frozenset("\x00/:")

CharSpec = Union[str, int]


def _to_chars(values: Iterable[CharSpec], field_name: str) -> frozenset[str]:
    chars = set()
    for value in values:
        if isinstance(value, int):
            try:
                value = chr(value)
            except (ValueError, OverflowError) as exc:
                raise ConfigurationError(f"{field_name}: invalid code point {value!r}") from exc
        if not isinstance(value, str) or len(value) != 1:
            raise ConfigurationError(f"{field_name}: expected single characters, got {value!r}")
        if ord(value) in SURROGATES:
            raise ConfigurationError(f"{field_name}: U+{ord(value):04X} is a surrogate, not a character")
        chars.add(value)
    return frozenset(chars)


def _to_names(values: Iterable[str], field_name: str) -> frozenset[str]:
    if isinstance(values, str):
        raise ConfigurationError(f"{field_name} must be given as a collection of strings")
    names = set()
    for value in values:
        if not isinstance(value, str):
            raise ConfigurationError(f"{field_name}: expected strings, got {value!r}")
        names.add(value)
    return frozenset(names)


@dataclass(frozen=True)
class RuleSet:
    """Immutable escaping policy for one target environment."""

    forbidden_chars: frozenset[str]
    reserved_names: frozenset[str]
    forbid_trailing: frozenset[str]
    max_len: int = DEFAULT_MAX_LEN
    escape_char: str = DEFAULT_ESCAPE_CHAR
    escape_width: int = DEFAULT_ESCAPE_WIDTH
    reserved_components: frozenset[str] = frozenset()
    name: str = "custom"

    def __post_init__(self) -> None:
        # Normalize iterables into frozensets; reserved names compare upper-case.
        object.__setattr__(self, "forbidden_chars", _to_chars(self.forbidden_chars, "forbidden_chars"))
        object.__setattr__(self, "forbid_trailing", _to_chars(self.forbid_trailing, "forbid_trailing"))
        reserved_names = _to_names(self.reserved_names, "reserved_names")
        object.__setattr__(self, "reserved_names", frozenset(n.upper() for n in reserved_names))
        object.__setattr__(
            self, "reserved_components", _to_names(self.reserved_components, "reserved_components")
        )
        self._validate()

    def _validate(self) -> None:
        if isinstance(self.max_len, bool) or not isinstance(self.max_len, int) or self.max_len <= 0:
            raise ConfigurationError(f"max_len must be a positive integer, got {self.max_len!r}")
        if (
            isinstance(self.escape_width, bool)
            or not isinstance(self.escape_width, int)
            or not MIN_ESCAPE_WIDTH <= self.escape_width <= MAX_ESCAPE_WIDTH
        ):
            raise ConfigurationError(
                f"escape_width must be between {MIN_ESCAPE_WIDTH} and {MAX_ESCAPE_WIDTH}, "
                f"got {self.escape_width!r}"
            )
        esc = self.escape_char
        if not isinstance(esc, str) or len(esc) != 1:
            raise ConfigurationError(f"escape_char must be a single character, got {esc!r}")
        if ord(esc) in SURROGATES:
            raise ConfigurationError(f"escape_char U+{ord(esc):04X} is a surrogate, not a character")
        if esc.upper() in HEX_DIGITS:
            raise ConfigurationError(f"escape_char {esc!r} must not be a hex digit")
        if esc in self.forbidden_chars:
            raise ConfigurationError(f"escape_char {esc!r} is itself forbidden")

        digits_forbidden = HEX_DIGITS & (self.forbidden_chars | self.forbid_trailing)
        if digits_forbidden:
            raise ConfigurationError(
                f"hex digits {''.join(sorted(digits_forbidden))} must stay legal in escape sequences"
            )

        for name in self.reserved_names:
            if not name or not name.isascii():
                raise ConfigurationError(f"reserved name {name!r} must be non-empty ASCII")
            if "." in name:
                raise ConfigurationError(f"reserved name {name!r} must not contain '.'")
            if esc in name or esc.upper() in name:
                raise ConfigurationError(f"reserved name {name!r} contains the escape character")
        for component in self.reserved_components:
            if not component:
                raise ConfigurationError("reserved components must be non-empty")
            if esc in component:
                raise ConfigurationError(f"reserved component {component!r} contains the escape character")

        escapable = {esc} | self.forbidden_chars | self.forbid_trailing
        escapable.update(component[0] for component in self.reserved_components)
        limit = 16 ** self.escape_width
        too_wide = sorted(f"U+{ord(c):04X}" for c in escapable if ord(c) >= limit)
        if too_wide:
            raise ConfigurationError(
                f"characters {', '.join(too_wide)} do not fit in {self.escape_width} hex digits"
            )

    # ------------------------------------------------------------------
    # Built-in OS classes
    # ------------------------------------------------------------------

    @classmethod
    def windows_like(
        cls,
        escape_char: str = DEFAULT_ESCAPE_CHAR,
        max_len: int = DEFAULT_MAX_LEN,
        escape_width: int = DEFAULT_ESCAPE_WIDTH,
    ) -> "RuleSet":
        return cls(
            forbidden_chars=WINDOWS_FORBIDDEN,
            reserved_names=WINDOWS_RESERVED,
            forbid_trailing=WINDOWS_TRAILING,
            max_len=max_len,
            escape_char=escape_char,
            escape_width=escape_width,
            name="windows",
        )

    @classmethod
    def posix_like(
        cls,
        escape_char: str = DEFAULT_ESCAPE_CHAR,
        max_len: int = DEFAULT_MAX_LEN,
        escape_width: int = DEFAULT_ESCAPE_WIDTH,
    ) -> "RuleSet":
        return cls(
            forbidden_chars=POSIX_FORBIDDEN,
            reserved_names=frozenset(),
            forbid_trailing=frozenset(),
            max_len=max_len,
            escape_char=escape_char,
            escape_width=escape_width,
            reserved_components=POSIX_RESERVED_COMPONENTS,
            name="posix",
        )

    @classmethod
    def mac_like(
        cls,
        escape_char: str = DEFAULT_ESCAPE_CHAR,
        max_len: int = DEFAULT_MAX_LEN,
        escape_width: int = DEFAULT_ESCAPE_WIDTH,
    ) -> "RuleSet":
        return cls(
            forbidden_chars=MAC_FORBIDDEN,
            reserved_names=frozenset(),
            forbid_trailing=frozenset(),
            max_len=max_len,
            escape_char=escape_char,
            escape_width=escape_width,
            reserved_components=POSIX_RESERVED_COMPONENTS,
            name="mac",
        )

    @classmethod
    def portable(
        cls,
        escape_char: str = DEFAULT_ESCAPE_CHAR,
        max_len: int = DEFAULT_MAX_LEN,
        escape_width: int = DEFAULT_ESCAPE_WIDTH,
    ) -> "RuleSet":
        """Strictest rules: a name legal here is legal on every built-in OS class."""
        params = dict(escape_char=escape_char, max_len=max_len, escape_width=escape_width)
        combined = cls.windows_like(**params).combine(cls.posix_like(**params), cls.mac_like(**params))
        return combined.with_name("portable")

    @classmethod
    def system(
        cls,
        platform: Optional[str] = None,
        escape_char: str = DEFAULT_ESCAPE_CHAR,
        max_len: int = DEFAULT_MAX_LEN,
        escape_width: int = DEFAULT_ESCAPE_WIDTH,
    ) -> "RuleSet":
        """Rules for the running platform (or the given ``sys.platform`` value)."""
        platform = sys.platform if platform is None else platform
        params = dict(escape_char=escape_char, max_len=max_len, escape_width=escape_width)
        if platform.startswith(("win32", "cygwin", "msys")):
            return cls.windows_like(**params)
        if platform == "darwin":
            return cls.mac_like(**params)
        return cls.posix_like(**params)

    @classmethod
    def custom(
        cls,
        forbidden_chars: Iterable[CharSpec],
        reserved_names: Iterable[str],
        forbid_trailing: Iterable[CharSpec],
        max_len: int,
        escape_char: str,
        *,
        reserved_components: Iterable[str] = (),
        escape_width: int = DEFAULT_ESCAPE_WIDTH,
        name: str = "custom",
    ) -> "RuleSet":
        """Assemble a rule set from primitive parts.

        Characters may be given as one-character strings or integer code
        points. Raises ``ConfigurationError`` if the parts cannot form an
        invertible escaping scheme.
        """
        if isinstance(reserved_names, str) or isinstance(reserved_components, str):
            raise ConfigurationError("reserved names must be given as a collection of strings")
        return cls(
            forbidden_chars=frozenset(forbidden_chars),
            reserved_names=frozenset(reserved_names),
            forbid_trailing=frozenset(forbid_trailing),
            max_len=max_len,
            escape_char=escape_char,
            escape_width=escape_width,
            reserved_components=frozenset(reserved_components),
            name=name,
        )

    @classmethod
    def by_name(cls, name: str, **kwargs) -> "RuleSet":
        factories = {
            "windows": cls.windows_like,
            "posix": cls.posix_like,
            "mac": cls.mac_like,
            "portable": cls.portable,
            "system": cls.system,
        }
        factory = factories.get(name)
        if factory is None:
            raise ConfigurationError(
                f"Unknown rule set: {name} (expected one of {', '.join(sorted(factories))})"
            )
        return factory(**kwargs)

    # ------------------------------------------------------------------
    # Derivation
    # ------------------------------------------------------------------

    def combine(self, *others: "RuleSet") -> "RuleSet":
        """Union of this rule set with ``others``.

        Escape parameters come from ``self``; ``max_len`` is the smallest.
        """
        rule_sets = (self, *others)
        return RuleSet(
            forbidden_chars=frozenset().union(*(r.forbidden_chars for r in rule_sets)),
            reserved_names=frozenset().union(*(r.reserved_names for r in rule_sets)),
            forbid_trailing=frozenset().union(*(r.forbid_trailing for r in rule_sets)),
            max_len=min(r.max_len for r in rule_sets),
            escape_char=self.escape_char,
            escape_width=self.escape_width,
            reserved_components=frozenset().union(*(r.reserved_components for r in rule_sets)),
            name="+".join(r.name for r in rule_sets),
        )

    def with_name(self, name: str) -> "RuleSet":
        return RuleSet(
            forbidden_chars=self.forbidden_chars,
            reserved_names=self.reserved_names,
            forbid_trailing=self.forbid_trailing,
            max_len=self.max_len,
            escape_char=self.escape_char,
            escape_width=self.escape_width,
            reserved_components=self.reserved_components,
            name=name,
        )

    def fingerprint(self) -> str:
        """Stable hash of every field that affects escaping.

        Callers that persist escaped names can store this alongside them and
        detect when a different rule set would be needed to unescape.
        """
        payload = {
            "forbidden_chars": sorted(ord(c) for c in self.forbidden_chars),
            "reserved_names": sorted(self.reserved_names),
            "forbid_trailing": sorted(ord(c) for c in self.forbid_trailing),
            "reserved_components": sorted(self.reserved_components),
            "max_len": self.max_len,
            "escape_char": ord(self.escape_char),
            "escape_width": self.escape_width,
        }
        serialized = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=True)
        return hashlib.sha256(serialized.encode("utf-8")).hexdigest()

    # ------------------------------------------------------------------
    # Queries used by the escape engine
    # ------------------------------------------------------------------

    def escape_sequence(self, char: str) -> str:
        return f"{self.escape_char}{ord(char):0{self.escape_width}X}"

    def is_reserved(self, component: str) -> bool:
        """Whether ``component`` is a reserved name or reserved component.

        Reserved names match the base name (text before the first ``.``,
        trailing spaces ignored) with ASCII case folding, as Windows does for
        device names such as ``con.txt`` or ``CON .log``.
        """
        if component in self.reserved_components:
            return True
        if not self.reserved_names:
            return False
        base = component.split(".", 1)[0].rstrip(" ")
        return base.isascii() and base.upper() in self.reserved_names
