from __future__ import annotations

from typing import Literal

LEGACY_FILENAME = ".packages"
STRUCTURED_DIRNAME = ".dart_tool"
STRUCTURED_FILENAME = "package_config.json"
STRUCTURED_RELATIVE_PATH = f"{STRUCTURED_DIRNAME}/{STRUCTURED_FILENAME}"

LEGACY_VERSION = 1
STRUCTURED_VERSION = 2

GENERATOR = "pkgmap"

ConfigFormat = Literal["structured", "legacy"]

_WHITESPACE = frozenset(b" \t\r\n")
_LBRACE = ord("{")


def first_non_whitespace_byte(data: bytes) -> int:
    for b in data:
        if b not in _WHITESPACE:
            return b
    return -1


def sniff_format(data: bytes) -> ConfigFormat:
    """Classify ``data`` by its first significant byte: ``{`` means JSON."""
    if first_non_whitespace_byte(data) == _LBRACE:
        return "structured"
    return "legacy"
