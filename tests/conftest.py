"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from pathlib import Path
from typing import Generator

import pytest

from filesan.core.rules import RuleSet
from filesan.settings import default_rules


_SETTINGS_ENV = (
    "FILESAN_RULE_SET",
    "FILESAN_ESCAPE_CHAR",
    "FILESAN_ESCAPE_WIDTH",
    "FILESAN_MAX_LEN",
    "FILESAN_ENV_FILE",
)


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    for item in items:
        path = str(item.fspath).replace("\\", "/")
        if "/tests/unit/" in path:
            item.add_marker(pytest.mark.unit)


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Generator[Path, None, None]:
    """Point HOME at an empty directory and drop FILESAN_* variables."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("USERPROFILE", str(home))
    for key in _SETTINGS_ENV:
        monkeypatch.delenv(key, raising=False)
    default_rules.cache_clear()
    try:
        yield home
    finally:
        default_rules.cache_clear()


@pytest.fixture
def windows_rules() -> RuleSet:
    return RuleSet.windows_like()


@pytest.fixture
def posix_rules() -> RuleSet:
    return RuleSet.posix_like()


@pytest.fixture
def portable_rules() -> RuleSet:
    return RuleSet.portable()


@pytest.fixture(params=["windows", "posix", "mac", "portable"])
def builtin_rules(request: pytest.FixtureRequest) -> RuleSet:
    return RuleSet.by_name(request.param)
