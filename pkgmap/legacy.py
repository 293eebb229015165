from __future__ import annotations

import io
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Literal, TextIO

from .errors import (
    ErrorHandler,
    PackageConfigArgumentError,
    PackageConfigError,
    PackageConfigFormatError,
)
from .formats import GENERATOR, LEGACY_VERSION
from .model import EMPTY_CONFIG, Package, PackageConfig, validate_package
from .names import check_package_name, is_valid_package_name
from .uris import (
    InvalidReferenceError,
    as_directory,
    has_scheme,
    is_absolute,
    relativize,
    resolve_reference,
    to_uri,
)

_LF = 0x0A
_CR = 0x0D
_HASH = 0x23
_COLON = 0x3A
_QUESTION = 0x3F

LineKind = Literal["accepted", "skipped", "comment", "blank"]


@dataclass(frozen=True)
class LineResult:
    """Outcome of scanning one line of a ``.packages`` file."""

    kind: LineKind
    start: int  # byte offset of the first character of the line
    end: int  # byte offset of the line terminator (or len(source))
    package: Package | None = None
    errors: tuple[PackageConfigError, ...] = ()


def _in_source_order(
    errors: tuple[PackageConfigError, ...] | list[PackageConfigError],
) -> tuple[PackageConfigError, ...]:
    return tuple(sorted(errors, key=lambda e: getattr(e, "offset", None) or 0))


def _skipped(start: int, end: int, *errors: PackageConfigError) -> LineResult:
    return LineResult(
        kind="skipped", start=start, end=end, errors=_in_source_order(errors)
    )


def _classify_entry(
    source: bytes,
    *,
    start: int,
    end: int,
    separator: int,
    query: int,
    fragment: int,
    base: str,
    seen: set[str],
) -> LineResult:
    if separator < 0:
        return _skipped(
            start, end, PackageConfigFormatError("No ':' on line", source, end)
        )

    name = source[start:separator].decode("latin-1")
    invalid = check_package_name(name)
    if invalid >= 0:
        return _skipped(
            start,
            end,
            PackageConfigFormatError(
                "Not a valid package name", source, start + invalid
            ),
        )

    errors: list[PackageConfigError] = []
    value_end = end
    if query >= 0:
        errors.append(
            PackageConfigFormatError("Location URI must not have query", source, query)
        )
        value_end = query
    elif fragment >= 0:
        errors.append(
            PackageConfigFormatError(
                "Location URI must not have fragment", source, fragment
            )
        )
        value_end = fragment

    value_start = separator + 1
    try:
        value = source[value_start:value_end].decode("utf-8")
    except UnicodeDecodeError as e:
        errors.append(
            PackageConfigFormatError(
                "Location URI is not valid UTF-8", source, value_start + e.start
            )
        )
        return _skipped(start, end, *errors)

    try:
        location = resolve_reference(base, value)
    except InvalidReferenceError as e:
        # The reference offset counts characters; the source is bytes.
        bad = value_start + len(value[: e.offset].encode("utf-8"))
        errors.append(
            PackageConfigFormatError(f"Invalid location URI: {e}", source, bad)
        )
        return _skipped(start, end, *errors)

    if has_scheme(location, "package"):
        errors.append(
            PackageConfigFormatError(
                "Package URI as location for package", source, value_start
            )
        )
        return _skipped(start, end, *errors)
    location = as_directory(location)

    if name in seen:
        errors.append(
            PackageConfigFormatError(
                "Same package name occurred more than once", source, start
            )
        )
        return _skipped(start, end, *errors)

    package = validate_package(
        name, location, errors.append, source=source, offset=value_start
    )
    if package is None:
        return _skipped(start, end, *errors)
    return LineResult(
        kind="accepted",
        start=start,
        end=end,
        package=package,
        errors=_in_source_order(errors),
    )


def _scan_lines(source: bytes, base: str, seen: set[str]) -> Iterator[LineResult]:
    # ``seen`` is read here and updated by the consumer between lines.
    index = 0
    length = len(source)
    while index < length:
        start = index
        first = source[index]
        index += 1
        if first == _CR or first == _LF:
            yield LineResult(kind="blank", start=start, end=start)
            continue

        separator = -1
        query = -1
        fragment = -1
        end = length
        while index < length:
            ch = source[index]
            index += 1
            if ch == _COLON and separator < 0:
                separator = index - 1
            elif ch == _CR or ch == _LF:
                end = index - 1
                break
            elif ch == _QUESTION and query < 0 and fragment < 0:
                query = index - 1
            elif ch == _HASH and fragment < 0:
                fragment = index - 1

        if first == _HASH:
            yield LineResult(kind="comment", start=start, end=end)
        elif first == _COLON:
            yield _skipped(
                start,
                end,
                PackageConfigFormatError("Missing package name", source, start),
            )
        else:
            yield _classify_entry(
                source,
                start=start,
                end=end,
                separator=separator,
                query=query,
                fragment=fragment,
                base=base,
                seen=seen,
            )


def parse_packages_file(
    source: bytes | str,
    base_location: str | Path,
    on_error: ErrorHandler,
) -> PackageConfig:
    """Parse the content of a ``.packages`` file.

    ``base_location`` is the location of the file itself; relative package
    locations are resolved against it. Malformed lines are reported to
    ``on_error`` and skipped, the rest of the file is still read.
    """
    base = to_uri(base_location)
    if has_scheme(base, "package"):
        on_error(
            PackageConfigArgumentError(
                base, "base_location", "Must not be a package: URI"
            )
        )
        return EMPTY_CONFIG
    if isinstance(source, str):
        source = source.encode("utf-8")

    packages: list[Package] = []
    seen: set[str] = set()
    for result in _scan_lines(source, base, seen):
        for err in result.errors:
            on_error(err)
        if result.kind == "accepted" and result.package is not None:
            packages.append(result.package)
            seen.add(result.package.name)
    return PackageConfig(version=LEGACY_VERSION, packages=tuple(packages))


def write_packages_file(
    output: TextIO,
    config: PackageConfig,
    *,
    base_uri: str | Path | None = None,
    comment: str | None = None,
) -> None:
    """Write ``config`` in the ``.packages`` line format.

    Each line of ``comment`` is written prefixed by ``# ``; without a comment
    a "generated by" line is written instead. With ``base_uri``, package
    locations are made relative to it where possible.
    """
    base: str | None = None
    if base_uri is not None:
        base = to_uri(base_uri)
        if not is_absolute(base):
            raise PackageConfigArgumentError(base_uri, "base_uri", "Must be absolute")
        if has_scheme(base, "package"):
            raise PackageConfigArgumentError(
                base_uri, "base_uri", "Must not be a package: URI"
            )

    if comment is not None:
        lines = comment.split("\n")
        if lines[-1] == "":
            lines.pop()
        for line in lines:
            output.write(f"# {line}\n")
    else:
        output.write(f"# generated by {GENERATOR} at {datetime.now()}\n")

    for package in config:
        name = package.name
        if not is_valid_package_name(name):
            raise PackageConfigArgumentError(
                name, "config", f'"{name}" is not a valid package name'
            )
        uri = package.package_uri_root
        if has_scheme(uri, "package"):
            raise PackageConfigArgumentError(
                uri, "config", f"Package location must not be a package URI: {uri}"
            )
        if base is not None:
            uri = relativize(uri, base)
        uri = as_directory(uri)
        output.write(f"{name}:{uri}\n")


def format_packages_file(
    config: PackageConfig,
    *,
    base_uri: str | Path | None = None,
    comment: str | None = None,
) -> str:
    buf = io.StringIO()
    write_packages_file(buf, config, base_uri=base_uri, comment=comment)
    return buf.getvalue()
