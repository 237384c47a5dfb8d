"""Default rule set selection."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
import json
import logging
import os
from pathlib import Path
from typing import Any, Mapping, Optional

from dotenv import dotenv_values

from filesan.core.rules import (
    DEFAULT_ESCAPE_CHAR,
    DEFAULT_ESCAPE_WIDTH,
    DEFAULT_MAX_LEN,
    RuleSet,
)
from filesan.errors import ConfigurationError

logger = logging.getLogger(__name__)

_DEFAULT_RULE_SET = "portable"
_ALLOWED_RULE_SETS = {"windows", "posix", "mac", "portable", "system"}

_ENV_KEYS = {
    "rule_set": "FILESAN_RULE_SET",
    "escape_char": "FILESAN_ESCAPE_CHAR",
    "escape_width": "FILESAN_ESCAPE_WIDTH",
    "max_len": "FILESAN_MAX_LEN",
}
ENV_FILE_VAR = "FILESAN_ENV_FILE"


@dataclass(frozen=True)
class Settings:
    rule_set: str = _DEFAULT_RULE_SET
    escape_char: str = DEFAULT_ESCAPE_CHAR
    escape_width: int = DEFAULT_ESCAPE_WIDTH
    max_len: int = DEFAULT_MAX_LEN

    def build_rules(self) -> RuleSet:
        return RuleSet.by_name(
            self.rule_set,
            escape_char=self.escape_char,
            escape_width=self.escape_width,
            max_len=self.max_len,
        )


def load_settings(path: Optional[Path], *, env_file: Optional[Path] = None) -> Settings:
    """Load settings from JSON config file, with .env and environment overrides.

    Priority order:
    1. Environment variables (FILESAN_RULE_SET, FILESAN_ESCAPE_CHAR, ...)
    2. Variables from ``env_file`` (read without touching ``os.environ``)
    3. JSON config file
    4. Defaults

    Args:
        path: Path to JSON config file, or None to use defaults only
        env_file: Optional dotenv file with FILESAN_* variables

    Returns:
        Settings object with resolved values

    Raises:
        ConfigurationError: A value is malformed or names an unknown rule set
    """
    json_settings: dict[str, Any] = {}
    if path and path.exists():
        try:
            json_settings = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"Invalid settings file {path}: {exc}") from exc
        if not isinstance(json_settings, dict):
            raise ConfigurationError(f"Settings file {path} must contain a JSON object")
        for key in sorted(set(json_settings) - set(_ENV_KEYS)):
            logger.warning("Ignoring unknown setting %r in %s", key, path)

    dotenv_settings: Mapping[str, Optional[str]] = {}
    if env_file is not None:
        dotenv_settings = dotenv_values(env_file)

    def resolve(key: str, default: Any) -> Any:
        env_key = _ENV_KEYS[key]
        value = os.getenv(env_key) or dotenv_settings.get(env_key)
        if value:
            return value
        return json_settings.get(key, default)

    rule_set = resolve("rule_set", _DEFAULT_RULE_SET)
    if not isinstance(rule_set, str) or rule_set not in _ALLOWED_RULE_SETS:
        raise ConfigurationError(f"Unsupported rule set: {rule_set}")

    settings = Settings(
        rule_set=rule_set,
        escape_char=resolve("escape_char", DEFAULT_ESCAPE_CHAR),
        escape_width=_as_int("escape_width", resolve("escape_width", DEFAULT_ESCAPE_WIDTH)),
        max_len=_as_int("max_len", resolve("max_len", DEFAULT_MAX_LEN)),
    )
    logger.debug("Resolved settings: %s", settings)
    return settings


def _as_int(key: str, value: Any) -> int:
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ConfigurationError(f"Setting {key} must be an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError) as exc:
        raise ConfigurationError(f"Setting {key} must be an integer, got {value!r}") from exc


def default_config_path() -> Path:
    return Path.home() / ".config" / "filesan" / "settings.json"


@lru_cache(maxsize=1)
def default_rules() -> RuleSet:
    """Rule set used when ``escape``/``unescape`` are called without one."""
    env_file = os.getenv(ENV_FILE_VAR)
    settings = load_settings(
        default_config_path(),
        env_file=Path(env_file) if env_file else None,
    )
    return settings.build_rules()
