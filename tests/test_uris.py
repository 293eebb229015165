from __future__ import annotations

from pathlib import Path

import pytest

from pkgmap.uris import (
    InvalidReferenceError,
    as_directory,
    has_scheme,
    is_absolute,
    relativize,
    resolve_reference,
    to_uri,
    uri_to_path,
)

BASE = "file:///p/.packages"


def test_resolve_relative_and_absolute_references() -> None:
    assert resolve_reference(BASE, "lib/") == "file:///p/lib/"
    assert resolve_reference(BASE, "../q/lib") == "file:///q/lib"
    assert resolve_reference(BASE, "/abs/") == "file:///abs/"
    assert resolve_reference(BASE, "http://h/x/") == "http://h/x/"
    assert resolve_reference(BASE, "package:foo/") == "package:foo/"


@pytest.mark.parametrize("ref", ["a b/", "lib/\x01", "%zz/", "http://[::1/x"])
def test_resolve_rejects_malformed_references(ref: str) -> None:
    with pytest.raises(ValueError):
        resolve_reference(BASE, ref)


def test_resolve_against_unregistered_scheme() -> None:
    base = "memory:/proj/.packages"
    assert resolve_reference(base, "lib/") == "memory:/proj/lib/"
    assert resolve_reference(base, "/x/") == "memory:/x/"
    assert resolve_reference(base, "./a/../b/./c/") == "memory:/proj/b/c/"
    assert resolve_reference(base, "../../up/") == "memory:/up/"
    assert resolve_reference(base, "") == base
    assert resolve_reference(base, "?v=1") == "memory:/proj/.packages?v=1"


def test_resolve_against_base_with_authority() -> None:
    base = "custom://host/p/.packages"
    assert resolve_reference(base, "lib/") == "custom://host/p/lib/"
    assert resolve_reference(base, "//other/x/") == "custom://other/x/"
    assert resolve_reference("custom://host", "lib/") == "custom://host/lib/"


@pytest.mark.parametrize(
    ("ref", "offset"),
    [("a b/", 1), ("lib/\x01", 4), ("x/%zz/", 2), ("http://[::1/x", 7)],
)
def test_malformed_reference_reports_offset(ref: str, offset: int) -> None:
    with pytest.raises(InvalidReferenceError) as exc:
        resolve_reference(BASE, ref)
    assert exc.value.offset == offset


def test_as_directory() -> None:
    assert as_directory("file:///x") == "file:///x/"
    assert as_directory("file:///x/") == "file:///x/"
    assert as_directory("http://h") == "http://h/"
    assert as_directory("lib") == "lib/"


def test_relativize_same_scheme() -> None:
    assert relativize("file:///p/lib/", BASE) == "lib/"
    assert relativize("file:///p/", BASE) == "./"
    assert relativize("file:///q/lib/", BASE) == "../q/lib/"
    assert relativize("file:///p/a/b/", "file:///p/a/") == "b/"


def test_relativize_keeps_absolute_when_no_relative_form() -> None:
    assert relativize("http://h/x/", BASE) == "http://h/x/"
    assert relativize("http://other/x/", "http://h/x/.packages") == "http://other/x/"


def test_relativize_protects_colon_in_first_segment() -> None:
    assert relativize("file:///p/a:b/", BASE) == "./a:b/"


def test_scheme_helpers() -> None:
    assert has_scheme("package:foo/", "package")
    assert has_scheme("FILE:///x", "file")
    assert not has_scheme("/x", "file")
    assert is_absolute("file:///x/")
    assert not is_absolute("lib/")
    assert not is_absolute("file:///x/#frag")


def test_path_round_trip(tmp_path: Path) -> None:
    uri = to_uri(tmp_path)
    assert uri.startswith("file://")
    assert uri.endswith("/")
    assert uri_to_path(uri) == tmp_path
    with pytest.raises(ValueError):
        uri_to_path("http://h/x")


def test_to_uri_passes_strings_through() -> None:
    assert to_uri("http://h/x") == "http://h/x"
