"""
Base protocol and types for binlog coordinates and the log catalog.

This module defines the LogCatalog protocol the backup orchestrators read
from, along with the LogCoordinate type stored between runs.

Invariants:
    - A coordinate's offset is only meaningful within its segment
    - Coordinates order by segment name first, then offset
    - Segment names are fixed-width, so name order equals creation order

How to change safely:
    - Protocol changes require updating MysqlServer and InMemoryLogCatalog
    - Never change the "<segment>:<offset>" text form, stored records use it
"""

from __future__ import annotations

import re
from abc import abstractmethod
from dataclasses import dataclass
from typing import List, Protocol, Tuple, runtime_checkable

from ..errors import ParseError

_VERSION_RE = re.compile(r"(\d+)\.(\d+)\.(\d+)")


@dataclass(frozen=True, order=True)
class LogCoordinate:
    """Exact position in the binary log stream.

    Attributes:
        segment: Binlog file name (e.g. "binlog.000042")
        offset: Byte position within that file

    Field order gives the total order: segment, then offset.
    """

    segment: str
    offset: int

    def __post_init__(self) -> None:
        if not self.segment:
            raise ValueError("segment must not be empty")
        if self.offset < 0:
            raise ValueError(f"offset must not be negative: {self.offset}")

    @classmethod
    def parse(cls, text: str) -> LogCoordinate:
        """Parse the "<segment>:<offset>" record form.

        Raises:
            ParseError: If text is not exactly two colon-delimited fields
                with a non-negative integer offset
        """
        parts = text.strip().split(":")
        if len(parts) != 2:
            raise ParseError(f"Invalid position record: {text!r}", raw=text)

        segment, offset = parts[0].strip(), parts[1].strip()
        if not segment or not offset.isdigit():
            raise ParseError(f"Invalid position record: {text!r}", raw=text)

        return cls(segment=segment, offset=int(offset))

    def __str__(self) -> str:
        return f"{self.segment}:{self.offset}"


def parse_version(text: str) -> Tuple[int, int, int]:
    """Extract the numeric (major, minor, patch) from a version string.

    Works on both server versions ("8.0.36-log") and tool banners
    ("mysqldump  Ver 8.0.36 for Linux on x86_64").

    Raises:
        ValueError: If no x.y.z version is present
    """
    match = _VERSION_RE.search(text or "")
    if not match:
        raise ValueError(f"No version number in {text!r}")
    return int(match.group(1)), int(match.group(2)), int(match.group(3))


def format_version(version: Tuple[int, int, int]) -> str:
    """Render a version tuple as x.y.z."""
    return ".".join(str(part) for part in version)


@runtime_checkable
class LogCatalog(Protocol):
    """Protocol for the live server's binlog catalog.

    Both listing methods are point-in-time reads; a new segment may roll
    over between them. Callers detect that by comparing the newest listed
    segment with the tip segment.

    Example:
        >>> with MysqlServer(settings) as server:
        ...     segments = server.list_segments()
        ...     tip = server.current_tip()
    """

    @abstractmethod
    def server_version(self) -> str:
        """Return the server's version string.

        Raises:
            ConnectionError: If the server cannot be queried
        """
        ...

    @abstractmethod
    def list_segments(self) -> List[str]:
        """Return the names of all binlog files the server still holds."""
        ...

    @abstractmethod
    def current_tip(self) -> LogCoordinate:
        """Return the segment and offset the server is currently writing.

        Raises:
            ConsistencyError: If binary logging is disabled
        """
        ...
