"""
Tagged field values for document data.

Database adapters convert their SDK-specific special values into this closed
set of variants, so the size estimator and the hasher switch on types instead
of probing object attributes.

Document data is a plain ``dict[str, Any]`` whose values are:
- ``None``, ``bool``, ``int``, ``float``, ``str``, ``bytes``
- ``datetime`` or ``Timestamp``
- ``GeoPoint``
- ``DocumentRef``
- ``list`` of values, ``dict`` of str to values
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, TypeAlias

DocumentData: TypeAlias = dict[str, Any]


@dataclass(frozen=True)
class Timestamp:
    """
    A point in time with nanosecond precision.

    Attributes:
        seconds: Seconds since the Unix epoch.
        nanoseconds: Non-negative fraction of a second, in nanoseconds.
    """

    seconds: int
    nanoseconds: int = 0

    def __post_init__(self) -> None:
        if not 0 <= self.nanoseconds < 1_000_000_000:
            raise ValueError(f"nanoseconds must be in [0, 1e9), got {self.nanoseconds}")

    @classmethod
    def from_datetime(cls, value: datetime) -> Timestamp:
        """Build a Timestamp from a datetime (naive values are treated as UTC)."""
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        delta = value - datetime(1970, 1, 1, tzinfo=UTC)
        seconds = delta.days * 86400 + delta.seconds
        return cls(seconds=seconds, nanoseconds=delta.microseconds * 1000)

    def to_datetime(self) -> datetime:
        """Convert to an aware UTC datetime (microsecond precision)."""
        return datetime.fromtimestamp(self.seconds, tz=UTC).replace(
            microsecond=self.nanoseconds // 1000
        )


@dataclass(frozen=True)
class GeoPoint:
    """A latitude/longitude pair."""

    latitude: float
    longitude: float


@dataclass(frozen=True)
class DocumentRef:
    """
    Reference to another document.

    Attributes:
        path: Slash-separated document path (e.g. ``users/123``).
    """

    path: str

    @property
    def id(self) -> str:
        return self.path.rsplit("/", 1)[-1]


__all__ = [
    "DocumentData",
    "Timestamp",
    "GeoPoint",
    "DocumentRef",
]
