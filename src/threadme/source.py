"""Job sources: fixed count, file lines, or an unbounded counter."""

from __future__ import annotations

import itertools
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

INFINITY_MARKER = "∞"


class SourceError(ValueError):
    """Job source cannot be built (e.g. unreadable input file)."""


class SourceMode(str, Enum):
    COUNT = "count"
    FILE = "file"
    FOREVER = "forever"


@dataclass(frozen=True, slots=True)
class JobItem:
    """One element of the job stream: source position and substitution line."""

    index: int
    line: str | None


@dataclass(frozen=True, slots=True)
class JobSource:
    """Lazy, restartable description of where job items come from."""

    mode: SourceMode
    count: int = 0
    lines: tuple[str, ...] = ()

    @classmethod
    def from_count(cls, count: int) -> JobSource:
        if count < 0:
            raise SourceError(f"Job count must be >= 0, got {count}")
        return cls(mode=SourceMode.COUNT, count=count)

    @classmethod
    def from_lines(cls, lines: list[str] | tuple[str, ...]) -> JobSource:
        return cls(mode=SourceMode.FILE, lines=tuple(lines))

    @classmethod
    def from_file(cls, path: Path) -> JobSource:
        return cls.from_lines(read_lines(path))

    @classmethod
    def forever(cls) -> JobSource:
        return cls(mode=SourceMode.FOREVER)

    @property
    def total(self) -> str:
        """Total marker used in job log lines."""

        if self.mode is SourceMode.FOREVER:
            return INFINITY_MARKER
        if self.mode is SourceMode.FILE:
            return str(len(self.lines))
        return str(self.count)

    def __iter__(self) -> Iterator[JobItem]:
        if self.mode is SourceMode.FOREVER:
            return (JobItem(index=index, line=None) for index in itertools.count())
        if self.mode is SourceMode.FILE:
            return (JobItem(index=index, line=line) for index, line in enumerate(self.lines))
        return (JobItem(index=index, line=str(index)) for index in range(self.count))


def read_lines(path: Path) -> list[str]:
    """Read a whole file and return its lines without line terminators.

    Only ``\\n`` separates lines; one trailing ``\\r`` per line is dropped.
    Bytes that are not valid UTF-8 are kept via ``surrogateescape`` so the
    command line receives them unchanged.
    """

    try:
        data = path.read_bytes()
    except FileNotFoundError as error:
        raise SourceError(f"File to read does not exist: {path}") from error
    except OSError as error:
        raise SourceError(f"FILE READ ERROR! {path}: {error}") from error

    text = data.decode("utf-8", errors="surrogateescape")
    if not text:
        return []
    lines = text.split("\n")
    if text.endswith("\n"):
        lines.pop()
    return [line.removesuffix("\r") for line in lines]
