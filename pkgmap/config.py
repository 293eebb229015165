from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

try:
    import tomllib  # py311+
except ModuleNotFoundError:  # pragma: no cover
    import tomli as tomllib  # pyright: ignore[reportMissingImports]

# Settings files in lookup order, each with the tables that may hold settings.
# The first file that exists is the only one read.
SETTINGS_SOURCES: tuple[tuple[str, tuple[tuple[str, ...], ...]], ...] = (
    (".pkgmap.toml", (("pkgmap",), ("tool", "pkgmap"))),
    ("pkgmap.toml", (("pkgmap",), ("tool", "pkgmap"))),
    ("pyproject.toml", (("tool", "pkgmap"),)),
)

_BOOL_KEYS = ("prefer_newest", "relative", "respect_gitignore", "strict")


@dataclass
class Config:
    # Read an adjacent package_config.json instead of a requested .packages file.
    prefer_newest: bool = True
    # Write locations relative to the output file where possible.
    relative: bool = True
    # Comment block for written .packages files; None writes a "generated by" line.
    comment: str | None = None
    respect_gitignore: bool = True
    exclude: list[str] = field(default_factory=list)
    # `pkgmap check` also requires every file: package root to exist.
    strict: bool = False


def _table_at(data: Any, keys: tuple[str, ...]) -> dict[str, Any] | None:
    node = data
    for key in keys:
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node if isinstance(node, dict) else None


def _read_settings(root: Path) -> dict[str, Any]:
    root = root.resolve()
    for filename, tables in SETTINGS_SOURCES:
        path = root / filename
        if not path.is_file():
            continue
        data = tomllib.loads(path.read_text(encoding="utf-8"))
        for keys in tables:
            table = _table_at(data, keys)
            if table is not None:
                return table
        return {}
    return {}


def load_config(root: Path) -> Config:
    settings = _read_settings(root)
    cfg = Config()

    for key in _BOOL_KEYS:
        if key in settings:
            setattr(cfg, key, bool(settings[key]))

    comment = settings.get("comment")
    if isinstance(comment, str):
        cfg.comment = comment

    exclude = settings.get("exclude")
    if isinstance(exclude, list):
        cfg.exclude = [str(x) for x in exclude]

    return cfg
