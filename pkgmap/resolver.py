from __future__ import annotations

import warnings
from collections.abc import Callable
from pathlib import Path

from .errors import ErrorHandler, PackageConfigArgumentError
from .formats import (
    LEGACY_FILENAME,
    STRUCTURED_DIRNAME,
    STRUCTURED_FILENAME,
    STRUCTURED_RELATIVE_PATH,
    sniff_format,
)
from .legacy import parse_packages_file, write_packages_file
from .model import EMPTY_CONFIG, PackageConfig
from .structured import parse_package_config_json, write_package_config_json
from .uris import has_scheme, resolve_reference, to_uri, uri_to_path

# Returns the bytes at a URI, or None when nothing exists there.
Loader = Callable[[str], bytes | None]


def default_loader(uri: str) -> bytes | None:
    if not has_scheme(uri, "file"):
        raise PackageConfigArgumentError(
            uri, "uri", "Only file: URIs can be read without a loader"
        )
    path = uri_to_path(uri)
    if not path.exists():
        return None
    return path.read_bytes()


def structured_sibling_path(legacy_file: Path) -> Path:
    return legacy_file.parent / STRUCTURED_DIRNAME / STRUCTURED_FILENAME


def structured_sibling_uri(legacy_uri: str) -> str:
    return resolve_reference(legacy_uri, STRUCTURED_RELATIVE_PATH)


def _report_sibling_failure(
    location: str, error: Exception, on_error: ErrorHandler
) -> None:
    # The sibling exists but could not be loaded; an absent sibling is silent.
    warnings.warn(
        f"Could not load {location}, falling back to the legacy file: {error}",
        RuntimeWarning,
        stacklevel=3,
    )
    on_error(error)


def read_any_config_file(
    path: Path, prefer_newest: bool, on_error: ErrorHandler
) -> PackageConfig:
    """Read a mapping file in either format.

    If ``path`` holds a legacy ``.packages`` file and ``prefer_newest`` is
    true, an adjacent ``.dart_tool/package_config.json`` is read instead
    when it exists and can be loaded.
    """
    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as e:
        on_error(e)
        return EMPTY_CONFIG

    if sniff_format(data) == "structured":
        return parse_package_config_json(data, path, on_error)

    if prefer_newest:
        sibling = structured_sibling_path(path)
        if sibling.exists():
            try:
                sibling_data = sibling.read_bytes()
            except OSError as e:
                _report_sibling_failure(str(sibling), e, on_error)
            else:
                return parse_package_config_json(sibling_data, sibling, on_error)
    return parse_packages_file(data, path, on_error)


def read_any_config_uri(
    uri: str | Path,
    on_error: ErrorHandler,
    *,
    prefer_newest: bool = True,
    loader: Loader | None = None,
) -> PackageConfig:
    """Like :func:`read_any_config_file` but for a URI and a pluggable loader.

    The loader returns None for a missing resource. Without a loader only
    ``file:`` URIs can be read.
    """
    location = to_uri(uri)
    if has_scheme(location, "package"):
        raise PackageConfigArgumentError(location, "uri", "Must not be a package: URI")
    load = loader or default_loader

    try:
        data = load(location)
    except Exception as e:  # loader failures are reported, never raised
        on_error(e)
        return EMPTY_CONFIG
    if data is None:
        on_error(PackageConfigArgumentError(location, "uri", "File cannot be read"))
        return EMPTY_CONFIG

    if sniff_format(data) == "structured":
        return parse_package_config_json(data, location, on_error)

    if prefer_newest:
        sibling = structured_sibling_uri(location)
        try:
            sibling_data = load(sibling)
        except Exception as e:
            _report_sibling_failure(sibling, e, on_error)
        else:
            if sibling_data is not None:
                return parse_package_config_json(sibling_data, sibling, on_error)
    return parse_packages_file(data, location, on_error)


def read_packages_file(path: Path, on_error: ErrorHandler) -> PackageConfig:
    try:
        data = Path(path).read_bytes()
    except OSError as e:
        on_error(e)
        return EMPTY_CONFIG
    return parse_packages_file(data, Path(path), on_error)


def read_package_config_json_file(path: Path, on_error: ErrorHandler) -> PackageConfig:
    try:
        data = Path(path).read_bytes()
    except OSError as e:
        on_error(e)
        return EMPTY_CONFIG
    return parse_package_config_json(data, Path(path), on_error)


def write_package_config_files(
    config: PackageConfig,
    target_dir: Path,
    *,
    comment: str | None = None,
) -> tuple[Path, Path]:
    """Write both the structured file and the legacy file under ``target_dir``.

    Locations in each file are relative to that file where possible.
    Returns the paths written (structured, legacy).
    """
    target_dir = Path(target_dir)
    json_path = structured_sibling_path(target_dir / LEGACY_FILENAME)
    json_path.parent.mkdir(parents=True, exist_ok=True)
    with json_path.open("w", encoding="utf-8", newline="\n") as fh:
        write_package_config_json(fh, config, base_uri=json_path)

    legacy_path = target_dir / LEGACY_FILENAME
    with legacy_path.open("w", encoding="utf-8", newline="\n") as fh:
        write_packages_file(fh, config, base_uri=legacy_path, comment=comment)
    return json_path, legacy_path
