from __future__ import annotations


def _is_name_start(ch: str) -> bool:
    return ch == "_" or ("a" <= ch <= "z") or ("A" <= ch <= "Z")


def _is_name_char(ch: str) -> bool:
    return _is_name_start(ch) or ("0" <= ch <= "9")


def check_package_name(name: str | bytes) -> int:
    """Return the offset of the first invalid character of ``name``.

    Package names are ``[A-Za-z_][A-Za-z0-9_]*``. Returns -1 for a valid
    name and 0 for an empty one.
    """
    if isinstance(name, bytes):
        name = name.decode("latin-1")
    if not name:
        return 0
    if not _is_name_start(name[0]):
        return 0
    for i in range(1, len(name)):
        if not _is_name_char(name[i]):
            return i
    return -1


def is_valid_package_name(name: str | bytes) -> bool:
    return check_package_name(name) < 0
