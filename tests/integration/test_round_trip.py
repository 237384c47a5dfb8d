"""Integration tests for the escape/unescape laws across the built-in rule sets."""

from __future__ import annotations

import random
from concurrent.futures import ThreadPoolExecutor

import pytest

from filesan.core.escape import encoded_length, escape, find_violations, is_legal, unescape
from filesan.core.rules import RuleSet
from filesan.errors import LengthError, MalformedEscapeError
from tests.helpers.names import AWKWARD_NAMES, names_for


# Mostly characters the rule tables care about, plus a few ordinary ones.
_ALPHABET = (
    [chr(code) for code in range(0x20)]
    + list('<>:"/\\|?* .%_-~')
    + list("aAcCoOnNuUxXlLpPtT0123456789")
    + ["é", "ß", "ı", "日", "\U0001F3B5"]
)


def _random_names(count: int, seed: int) -> list[str]:
    rng = random.Random(seed)
    return ["".join(rng.choice(_ALPHABET) for _ in range(rng.randint(0, 12))) for _ in range(count)]


def _escaped_pairs(rules: RuleSet, names) -> list[tuple[str, str]]:
    pairs = []
    for name in names:
        try:
            pairs.append((name, escape(name, rules)))
        except LengthError:
            continue
    return pairs


def test_round_trip_law(builtin_rules: RuleSet) -> None:
    names = list(names_for(builtin_rules)) + _random_names(500, seed=7)
    for original, escaped in _escaped_pairs(builtin_rules, names):
        assert unescape(escaped, builtin_rules) == original


def test_legality_invariant(builtin_rules: RuleSet) -> None:
    names = list(names_for(builtin_rules)) + _random_names(500, seed=11)
    for original, escaped in _escaped_pairs(builtin_rules, names):
        assert find_violations(escaped, builtin_rules) == [], (original, escaped)
        assert not any(char in builtin_rules.forbidden_chars for char in escaped)
        assert encoded_length(escaped) <= builtin_rules.max_len
        if escaped:
            assert escaped[-1] not in builtin_rules.forbid_trailing
        assert not builtin_rules.is_reserved(escaped)


def test_injectivity(builtin_rules: RuleSet) -> None:
    names = set(names_for(builtin_rules)) | set(_random_names(1000, seed=13))
    pairs = _escaped_pairs(builtin_rules, sorted(names))
    escaped = [e for _, e in pairs]
    assert len(set(escaped)) == len(escaped)


def test_escape_is_deterministic(builtin_rules: RuleSet) -> None:
    for name in AWKWARD_NAMES:
        assert escape(name, builtin_rules) == escape(name, builtin_rules)


def test_unescape_never_accepts_foreign_strings(builtin_rules: RuleSet) -> None:
    """Any string unescape accepts must be exactly what escape produces."""
    candidates = _random_names(2000, seed=17) + [
        "%", "%0", "%00", "%000", "%0025", "%002E", "%002e", "%FFFF", "%D83C", "%0043ON",
    ]
    for candidate in candidates:
        try:
            decoded = unescape(candidate, builtin_rules)
        except MalformedEscapeError:
            continue
        assert escape(decoded, builtin_rules) == candidate


def test_escaped_names_are_legal_everywhere_with_portable() -> None:
    portable = RuleSet.portable()
    others = [RuleSet.windows_like(), RuleSet.posix_like(), RuleSet.mac_like()]
    for name in list(names_for(portable)) + _random_names(300, seed=19):
        try:
            escaped = escape(name, portable)
        except LengthError:
            continue
        for rules in others:
            assert is_legal(escaped, rules), (name, escaped, rules.name)


@pytest.mark.parametrize(
    "original, escaped",
    [
        ("CON", "%0043ON"),
        ("a:b", "a%003Ab"),
        ("trailing.", "trailing%002E"),
        ("", ""),
    ],
)
def test_windows_scenarios(windows_rules: RuleSet, original: str, escaped: str) -> None:
    assert escape(original, windows_rules) == escaped
    assert unescape(escaped, windows_rules) == original


def test_windows_failure_scenarios(windows_rules: RuleSet) -> None:
    with pytest.raises(MalformedEscapeError):
        unescape("bad%ZZ", windows_rules)
    with pytest.raises(LengthError):
        escape("x" * (windows_rules.max_len + 1), windows_rules)


def test_rule_sets_are_shareable_across_threads(portable_rules: RuleSet) -> None:
    names = _random_names(400, seed=23)

    def round_trip(name: str) -> bool:
        try:
            return unescape(escape(name, portable_rules), portable_rules) == name
        except LengthError:
            return True

    with ThreadPoolExecutor(max_workers=8) as pool:
        assert all(pool.map(round_trip, names))
