from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import pathspec

from .errors import ErrorHandler, raise_on_error
from .formats import LEGACY_FILENAME, STRUCTURED_DIRNAME, STRUCTURED_FILENAME
from .model import PackageConfig
from .resolver import read_package_config_json_file, read_packages_file

DEFAULT_EXCLUDES = [
    "**/.git/**",
    "**/.hg/**",
    "**/node_modules/**",
    "**/.venv/**",
]


@dataclass(frozen=True)
class Discovery:
    files: list[Path]
    root: Path


def _load_ignore_lines(root: Path, filename: str) -> list[str]:
    p = root / filename
    if not p.exists():
        return []
    return p.read_text(encoding="utf-8", errors="replace").splitlines()


def _load_combined_ignore(root: Path, *, respect_gitignore: bool) -> pathspec.PathSpec:
    # Order matters: patterns later in the list take precedence (e.g. negations).
    lines: list[str] = []
    if respect_gitignore:
        lines.extend(_load_ignore_lines(root, ".gitignore"))
    lines.extend(_load_ignore_lines(root, ".pkgmapignore"))
    return pathspec.PathSpec.from_lines("gitwildmatch", lines)


def _project_dir(path: Path) -> Path:
    """Directory a mapping file belongs to."""
    if path.name == STRUCTURED_FILENAME and path.parent.name == STRUCTURED_DIRNAME:
        return path.parent.parent
    return path.parent


def _is_mapping_file(path: Path) -> bool:
    if path.name == LEGACY_FILENAME:
        return True
    return path.name == STRUCTURED_FILENAME and path.parent.name == STRUCTURED_DIRNAME


def discover_config_files(
    root: Path,
    exclude: list[str] | None = None,
    respect_gitignore: bool = True,
) -> Discovery:
    """Find every legacy and structured mapping file under ``root``.

    Mapping files are routinely gitignored themselves, so ignore patterns
    are matched against the directory of the project that owns each file,
    not against the file.
    """
    root = root.resolve()

    ignore = _load_combined_ignore(root, respect_gitignore=respect_gitignore)
    exc = pathspec.PathSpec.from_lines(
        "gitwildmatch", DEFAULT_EXCLUDES + (exclude or [])
    )

    out: list[Path] = []
    for p in root.rglob("*"):
        if not _is_mapping_file(p) or not p.is_file():
            continue
        rel_s = p.relative_to(root).as_posix()
        if exc.match_file(rel_s):
            continue
        project_rel = _project_dir(p).relative_to(root).as_posix()
        if project_rel != "." and ignore.match_file(project_rel + "/"):
            continue
        out.append(p)

    out.sort(key=lambda p: p.as_posix())
    return Discovery(files=out, root=root)


def locate_package_config(start_dir: Path, *, recurse: bool = True) -> Path | None:
    """Return the mapping file governing ``start_dir``.

    Each directory from ``start_dir`` upwards is checked for a structured
    file first, then a legacy file.
    """
    directory = Path(start_dir).absolute()
    while True:
        structured = directory / STRUCTURED_DIRNAME / STRUCTURED_FILENAME
        if structured.is_file():
            return structured
        legacy = directory / LEGACY_FILENAME
        if legacy.is_file():
            return legacy
        if not recurse:
            return None
        parent = directory.parent
        if parent == directory:
            return None
        directory = parent


def find_package_config(
    start_dir: Path,
    *,
    recurse: bool = True,
    on_error: ErrorHandler | None = None,
) -> PackageConfig | None:
    path = locate_package_config(start_dir, recurse=recurse)
    if path is None:
        return None
    handler = on_error or raise_on_error
    if path.name == LEGACY_FILENAME:
        return read_packages_file(path, handler)
    return read_package_config_json_file(path, handler)
