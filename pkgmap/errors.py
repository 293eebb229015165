from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

ErrorHandler = Callable[[Exception], None]


class PackageConfigError(Exception):
    """Base class for all package mapping errors."""


class PackageConfigArgumentError(PackageConfigError, ValueError):
    """A caller passed an argument that violates a precondition."""

    def __init__(self, value: Any, name: str, message: str) -> None:
        super().__init__(f"Invalid argument ({name}): {message}: {value!r}")
        self.value = value
        self.name = name
        self.message = message


class PackageConfigFormatError(PackageConfigError, ValueError):
    """Malformed content in a mapping file.

    ``offset`` indexes into ``source`` (bytes or decoded text). Line and
    column are only derived from it when the error is rendered.
    """

    def __init__(
        self,
        message: str,
        source: bytes | str | None = None,
        offset: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.source = source
        self.offset = offset

    def _location(self) -> tuple[int, int] | None:
        if self.source is None or self.offset is None:
            return None
        src = self.source
        cr, lf = ("\r", "\n") if isinstance(src, str) else (0x0D, 0x0A)
        offset = max(0, min(self.offset, len(src)))
        line = 1
        line_start = 0
        i = 0
        while i < offset:
            ch = src[i]
            if ch == cr or ch == lf:
                if ch == cr and i + 1 < offset and src[i + 1] == lf:
                    i += 1
                line += 1
                line_start = i + 1
            i += 1
        return line, offset - line_start + 1

    @property
    def line(self) -> int | None:
        loc = self._location()
        return loc[0] if loc else None

    @property
    def column(self) -> int | None:
        loc = self._location()
        return loc[1] if loc else None

    def __str__(self) -> str:
        loc = self._location()
        if loc is None:
            return self.message
        return f"{self.message} (at line {loc[0]}, column {loc[1]})"


@dataclass
class ErrorCollector:
    """Error sink that keeps every reported error in order."""

    errors: list[Exception] = field(default_factory=list)

    def __call__(self, error: Exception) -> None:
        self.errors.append(error)

    def __bool__(self) -> bool:
        return bool(self.errors)

    def __len__(self) -> int:
        return len(self.errors)

    def messages(self) -> list[str]:
        return [str(e) for e in self.errors]


def raise_on_error(error: Exception) -> None:
    raise error
