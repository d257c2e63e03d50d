"""
memprobe.config
AUTHOR: carter-vin

Configuration gate: which value kinds a tick emits

Recognized keys (case-insensitive):
- ValuesAbsolute   (default true)
- ValuesPercentage (default false)

Values are boolean-ish strings: true/yes/on -> True, anything else -> False
"""

from __future__ import annotations

from dataclasses import dataclass, replace

CONFIG_KEYS = ("ValuesAbsolute", "ValuesPercentage")

TRUE_STRINGS = {"true", "yes", "on"}


class ConfigError(ValueError):
    """Unrecognized configuration key or malformed option"""


@dataclass(frozen=True)
class ProbeConfig:
    values_absolute: bool = True
    values_percentage: bool = False


def is_true(value: str) -> bool:
    return value.strip().lower() in TRUE_STRINGS


def apply_option(config: ProbeConfig, key: str, value: str) -> ProbeConfig:
    """
    Return a new config with key applied

    Raises ConfigError for keys outside CONFIG_KEYS
    """
    lowered = key.strip().lower()
    if lowered == "valuesabsolute":
        return replace(config, values_absolute=is_true(value))
    if lowered == "valuespercentage":
        return replace(config, values_percentage=is_true(value))
    raise ConfigError(f"unrecognized config key: {key} (known: {', '.join(CONFIG_KEYS)})")


def parse_option(option: str) -> tuple[str, str]:
    """
    Split a "Key=Value" command line option
    """
    key, sep, value = option.partition("=")
    if not sep or not key.strip():
        raise ConfigError(f"expected Key=Value, got: {option!r}")
    return key.strip(), value.strip()

