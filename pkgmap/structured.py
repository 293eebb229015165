from __future__ import annotations

import io
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, TextIO

from .errors import ErrorHandler, PackageConfigArgumentError, PackageConfigFormatError
from .formats import GENERATOR, STRUCTURED_VERSION
from .model import EMPTY_CONFIG, Package, PackageConfig, validate_package
from .names import is_valid_package_name
from .uris import (
    as_directory,
    has_scheme,
    is_absolute,
    relativize,
    resolve_reference,
    to_uri,
)


def _decode(source: bytes | str) -> str:
    if isinstance(source, str):
        return source
    return source.decode("utf-8-sig")


def _parse_entry(
    index: int,
    item: Any,
    base: str,
    seen: set[str],
    on_error: ErrorHandler,
) -> Package | None:
    if not isinstance(item, dict):
        on_error(PackageConfigFormatError(f"packages[{index}] must be an object"))
        return None
    name = item.get("name")
    if not isinstance(name, str):
        on_error(PackageConfigFormatError(f"packages[{index}] has no string 'name'"))
        return None
    root_ref = item.get("rootUri")
    if not isinstance(root_ref, str):
        on_error(
            PackageConfigFormatError(f"Package {name!r} has no string 'rootUri'")
        )
        return None
    try:
        root = as_directory(resolve_reference(base, root_ref))
    except ValueError as e:
        on_error(PackageConfigFormatError(f"Package {name!r}: invalid rootUri: {e}"))
        return None

    package_uri_root: str | None = None
    package_ref = item.get("packageUri")
    if package_ref is not None:
        if not isinstance(package_ref, str):
            on_error(
                PackageConfigFormatError(
                    f"Package {name!r}: 'packageUri' must be a string"
                )
            )
            return None
        try:
            package_uri_root = as_directory(resolve_reference(root, package_ref))
        except ValueError as e:
            on_error(
                PackageConfigFormatError(f"Package {name!r}: invalid packageUri: {e}")
            )
            return None

    language_version = item.get("languageVersion")
    if language_version is not None and not isinstance(language_version, str):
        on_error(
            PackageConfigFormatError(
                f"Package {name!r}: 'languageVersion' must be a string"
            )
        )
        return None

    if name in seen:
        on_error(
            PackageConfigFormatError(
                f"Same package name occurred more than once: {name!r}"
            )
        )
        return None
    return validate_package(
        name,
        root,
        on_error,
        package_uri_root=package_uri_root,
        language_version=language_version,
    )


def parse_package_config_json(
    source: bytes | str,
    base_location: str | Path,
    on_error: ErrorHandler,
) -> PackageConfig:
    """Parse a ``package_config.json`` document.

    ``rootUri`` values are resolved against ``base_location`` and
    ``packageUri`` values against their package's root. Invalid entries are
    reported and left out.
    """
    base = to_uri(base_location)
    if has_scheme(base, "package"):
        on_error(
            PackageConfigArgumentError(
                base, "base_location", "Must not be a package: URI"
            )
        )
        return EMPTY_CONFIG

    try:
        text = _decode(source)
    except UnicodeDecodeError as e:
        on_error(PackageConfigFormatError("Not valid UTF-8", source, e.start))
        return EMPTY_CONFIG
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        on_error(PackageConfigFormatError(f"Invalid JSON: {e.msg}", text, e.pos))
        return EMPTY_CONFIG

    if not isinstance(data, dict):
        on_error(PackageConfigFormatError("Package config must be a JSON object"))
        return EMPTY_CONFIG
    version = data.get("configVersion")
    if isinstance(version, bool) or not isinstance(version, int):
        on_error(PackageConfigFormatError("Missing or non-integer 'configVersion'"))
        return EMPTY_CONFIG
    if version != STRUCTURED_VERSION:
        on_error(PackageConfigFormatError(f"Unsupported configVersion: {version}"))
        return EMPTY_CONFIG
    items = data.get("packages")
    if not isinstance(items, list):
        on_error(PackageConfigFormatError("'packages' must be a list"))
        return EMPTY_CONFIG

    packages: list[Package] = []
    seen: set[str] = set()
    for i, item in enumerate(items):
        package = _parse_entry(i, item, base, seen, on_error)
        if package is not None:
            packages.append(package)
            seen.add(package.name)
    return PackageConfig(version=STRUCTURED_VERSION, packages=tuple(packages))


def _package_json(package: Package, base: str | None) -> dict[str, Any]:
    if not is_valid_package_name(package.name):
        raise PackageConfigArgumentError(
            package.name, "config", f'"{package.name}" is not a valid package name'
        )
    if has_scheme(package.root, "package"):
        raise PackageConfigArgumentError(
            package.root,
            "config",
            f"Package location must not be a package URI: {package.root}",
        )
    root = package.root if base is None else relativize(package.root, base)
    entry: dict[str, Any] = {"name": package.name, "rootUri": root}
    if package.package_uri_root != package.root:
        entry["packageUri"] = relativize(package.package_uri_root, package.root)
    if package.language_version is not None:
        entry["languageVersion"] = package.language_version
    return entry


def write_package_config_json(
    output: TextIO,
    config: PackageConfig,
    *,
    base_uri: str | Path | None = None,
) -> None:
    base: str | None = None
    if base_uri is not None:
        base = to_uri(base_uri)
        if not is_absolute(base):
            raise PackageConfigArgumentError(base_uri, "base_uri", "Must be absolute")

    data = {
        "configVersion": STRUCTURED_VERSION,
        "packages": [_package_json(p, base) for p in config],
        "generated": datetime.now(timezone.utc).isoformat(),
        "generator": GENERATOR,
    }
    json.dump(data, output, indent=2)
    output.write("\n")


def format_package_config_json(
    config: PackageConfig, *, base_uri: str | Path | None = None
) -> str:
    buf = io.StringIO()
    write_package_config_json(buf, config, base_uri=base_uri)
    return buf.getvalue()
