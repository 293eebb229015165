from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass
from functools import cached_property

from .errors import ErrorHandler, PackageConfigArgumentError, PackageConfigFormatError
from .names import check_package_name
from .uris import has_query_or_fragment, has_scheme, is_absolute

_LANGUAGE_VERSION_RE = re.compile(r"^(0|[1-9][0-9]*)\.(0|[1-9][0-9]*)$")


@dataclass(frozen=True)
class Package:
    """A single name -> location entry of a package mapping."""

    name: str
    root: str  # absolute directory URI, always ends in "/"
    package_uri_root: str  # where package:<name>/ resolves; inside root
    language_version: str | None = None  # "major.minor", structured format only


@dataclass(frozen=True)
class PackageConfig:
    version: int
    packages: tuple[Package, ...] = ()

    @cached_property
    def _by_name(self) -> dict[str, Package]:
        return {p.name: p for p in self.packages}

    @property
    def names(self) -> list[str]:
        return [p.name for p in self.packages]

    def get(self, name: str) -> Package | None:
        return self._by_name.get(name)

    def __getitem__(self, name: str) -> Package:
        return self._by_name[name]

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __iter__(self) -> Iterator[Package]:
        return iter(self.packages)

    def __len__(self) -> int:
        return len(self.packages)

    def resolve(self, package_uri: str) -> str | None:
        """Map ``package:<name>/<path>`` to a concrete location.

        Returns None when no package of that name is configured.
        """
        if not has_scheme(package_uri, "package"):
            raise PackageConfigArgumentError(
                package_uri, "package_uri", "Must be a package: URI"
            )
        rest = package_uri.split(":", 1)[1]
        name, sep, path = rest.partition("/")
        if not sep or check_package_name(name) >= 0:
            raise PackageConfigArgumentError(
                package_uri, "package_uri", "Must have the form package:name/path"
            )
        package = self.get(name)
        if package is None:
            return None
        return package.package_uri_root + path


EMPTY_CONFIG = PackageConfig(version=1)


def validate_package(
    name: str,
    root: str,
    on_error: ErrorHandler,
    *,
    package_uri_root: str | None = None,
    language_version: str | None = None,
    source: bytes | str | None = None,
    offset: int | None = None,
) -> Package | None:
    """Build a Package, reporting every violated constraint to ``on_error``.

    Returns None if any constraint was violated.
    """
    ok = True

    def report(message: str, at: int | None = offset) -> None:
        nonlocal ok
        ok = False
        on_error(PackageConfigFormatError(message, source, at))

    invalid = check_package_name(name)
    if invalid >= 0:
        report(
            f"Not a valid package name: {name!r}",
            None if offset is None else offset + invalid,
        )

    if not is_absolute(root):
        report(f"Package root must be absolute: {root}")
    elif has_scheme(root, "package"):
        report(f"Package root must not be a package: URI: {root}")
    elif has_query_or_fragment(root):
        report(f"Package root must not have query or fragment: {root}")
    elif not root.endswith("/"):
        report(f"Package root must be a directory (end with '/'): {root}")

    if package_uri_root is None:
        package_uri_root = root
    elif package_uri_root != root:
        if has_scheme(package_uri_root, "package"):
            report(f"Package URI root must not be a package: URI: {package_uri_root}")
        elif not package_uri_root.endswith("/"):
            report(f"Package URI root must end with '/': {package_uri_root}")
        elif not package_uri_root.startswith(root):
            report(
                f"Package URI root must be inside package root: {package_uri_root}"
            )

    if language_version is not None and not _LANGUAGE_VERSION_RE.match(
        language_version
    ):
        report(f"Invalid language version: {language_version!r}")

    if not ok:
        return None
    return Package(
        name=name,
        root=root,
        package_uri_root=package_uri_root,
        language_version=language_version,
    )
