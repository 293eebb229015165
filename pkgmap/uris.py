from __future__ import annotations

import posixpath
import re
from pathlib import Path
from urllib.parse import SplitResult, urlsplit, urlunsplit
from urllib.request import url2pathname

_BAD_PERCENT_RE = re.compile(r"%(?![0-9A-Fa-f]{2})")


def to_uri(location: Path | str) -> str:
    """Return ``location`` as a URI string; paths become ``file:`` URIs."""
    if isinstance(location, Path):
        uri = location.absolute().as_uri()
        if location.is_dir() and not uri.endswith("/"):
            uri += "/"
        return uri
    return location


def scheme_of(uri: str) -> str:
    return urlsplit(uri).scheme.lower()


def has_scheme(uri: str, scheme: str) -> bool:
    return scheme_of(uri) == scheme.lower()


def is_absolute(uri: str) -> bool:
    parts = urlsplit(uri)
    return bool(parts.scheme) and not parts.fragment


class InvalidReferenceError(ValueError):
    """A URI reference that cannot be resolved.

    ``offset`` is the index of the offending character in the reference.
    """

    def __init__(self, message: str, offset: int = 0) -> None:
        super().__init__(message)
        self.offset = offset


def _check_reference(reference: str) -> SplitResult:
    for i, ch in enumerate(reference):
        if ord(ch) <= 0x20 or ord(ch) == 0x7F:
            raise InvalidReferenceError(
                f"Invalid character {ch!r} in URI reference", i
            )
    m = _BAD_PERCENT_RE.search(reference)
    if m is not None:
        raise InvalidReferenceError("Invalid URL encoding", m.start())
    try:
        parts = urlsplit(reference)
        parts.port  # raises on a malformed port
    except ValueError as e:
        bracket = reference.find("[")
        raise InvalidReferenceError(str(e), max(bracket, 0)) from e
    return parts


def _remove_dot_segments(path: str) -> str:
    if not path:
        return path
    rooted = path.startswith("/")
    segments = path[1:].split("/") if rooted else path.split("/")
    out: list[str] = []
    last = len(segments) - 1
    for i, seg in enumerate(segments):
        if seg == "..":
            if out:
                out.pop()
        elif seg != ".":
            out.append(seg)
            continue
        if i == last:
            out.append("")
    joined = "/".join(out)
    return "/" + joined if rooted else joined


def _merge(base: SplitResult, path: str) -> str:
    if base.netloc and not base.path:
        return "/" + path
    return base.path[: base.path.rfind("/") + 1] + path


def resolve_reference(base: str, reference: str) -> str:
    """Resolve ``reference`` against ``base`` (RFC 3986, section 5.2).

    Works for any base scheme. Raises ``InvalidReferenceError`` when
    ``reference`` is not a well-formed URI reference.
    """
    ref = _check_reference(reference)
    if ref.scheme:
        return urlunsplit(ref._replace(path=_remove_dot_segments(ref.path)))

    b = urlsplit(base)
    if ref.netloc or reference.startswith("//"):
        netloc, path, query = ref.netloc, _remove_dot_segments(ref.path), ref.query
    elif not ref.path:
        netloc, path = b.netloc, b.path
        query = ref.query if "?" in reference else b.query
    else:
        netloc, query = b.netloc, ref.query
        if ref.path.startswith("/"):
            path = _remove_dot_segments(ref.path)
        else:
            path = _remove_dot_segments(_merge(b, ref.path))
    return urlunsplit((b.scheme, netloc, path, query, ref.fragment))


def as_directory(uri: str) -> str:
    parts = urlsplit(uri)
    if parts.path.endswith("/"):
        return uri
    return urlunsplit(parts._replace(path=parts.path + "/"))


def has_query_or_fragment(uri: str) -> bool:
    return "?" in uri or "#" in uri


def relativize(uri: str, base: str) -> str:
    """Express ``uri`` relative to the directory of the ``base`` file location.

    Falls back to ``uri`` itself when no relative form exists (different
    scheme or authority).
    """
    target = urlsplit(uri)
    anchor = urlsplit(base)
    if target.scheme.lower() != anchor.scheme.lower():
        return uri
    if target.netloc.lower() != anchor.netloc.lower():
        return uri
    if not target.path.startswith("/") or not anchor.path.startswith("/"):
        return uri

    base_dir = anchor.path
    if not base_dir.endswith("/"):
        base_dir = posixpath.dirname(base_dir) or "/"
    rel = posixpath.relpath(target.path, base_dir)
    if target.path.endswith("/"):
        rel = "./" if rel == "." else rel + "/"
    first = rel.split("/", 1)[0]
    if ":" in first:
        rel = "./" + rel
    return urlunsplit(("", "", rel, target.query, target.fragment))


def uri_to_path(uri: str) -> Path:
    parts = urlsplit(uri)
    if parts.scheme.lower() != "file":
        raise ValueError(f"Not a file URI: {uri}")
    return Path(url2pathname(parts.path))
