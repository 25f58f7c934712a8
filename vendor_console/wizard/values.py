"""Client-side field values that are not plain scalars or lists.

A wizard keeps every field's value in a flat ``{name: value}`` mapping. Text,
numbers, booleans and lists are stored as-is; file fields hold a ``NewFile``
or an ``ExistingFile`` and date fields hold a ``CompositeDate``.
"""
import datetime
from dataclasses import dataclass
from typing import Any, Optional, Union


@dataclass(frozen=True)
class NewFile:
    """A file picked in this session that still has to be uploaded."""

    filename: str
    data: bytes = b""
    content_type: Optional[str] = None

    @property
    def extension(self) -> str:
        if "." not in self.filename:
            return ""
        return self.filename.rsplit(".", 1)[1].lower()

    def __repr__(self) -> str:
        return f"<NewFile {self.filename} ({len(self.data)} bytes)>"


@dataclass(frozen=True)
class ExistingFile:
    """A file that already lives at ``url``; submitting it again needs no upload."""

    url: str


FileRef = Union[NewFile, ExistingFile]


@dataclass(frozen=True)
class CompositeDate:
    day: Optional[int] = None
    month: Optional[int] = None
    year: Optional[int] = None

    def is_complete(self) -> bool:
        return bool(self.day and self.month and self.year)

    def to_iso(self) -> Optional[str]:
        if not self.is_complete():
            return None
        return f"{self.year:04d}-{self.month:02d}-{self.day:02d}"

    def to_date(self) -> datetime.date:
        return datetime.date(self.year, self.month, self.day)

    @classmethod
    def from_iso(cls, text: str) -> "CompositeDate":
        # timestamps such as 2026-01-05T00:00:00.000Z keep only their date part
        parsed = datetime.date.fromisoformat(text.strip()[:10])
        return cls(day=parsed.day, month=parsed.month, year=parsed.year)

    @classmethod
    def coerce(cls, value: Any) -> Optional["CompositeDate"]:
        """Build a CompositeDate from a date, an ISO string or a day/month/year dict."""
        if value is None or isinstance(value, cls):
            return value
        if isinstance(value, datetime.datetime):
            value = value.date()
        if isinstance(value, datetime.date):
            return cls(day=value.day, month=value.month, year=value.year)
        if isinstance(value, str):
            if not value.strip():
                return None
            return cls.from_iso(value)
        if isinstance(value, dict):
            return cls(
                day=_optional_int(value.get("day")),
                month=_optional_int(value.get("month")),
                year=_optional_int(value.get("year")),
            )
        raise ValueError(f"Not a date: {value!r}")


def _optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValueError(f"Not a whole number: {value!r}")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f"Not a whole number: {value!r}")
        return int(value)
    try:
        return int(value)
    except TypeError:
        raise ValueError(f"Not a whole number: {value!r}") from None


def is_empty(value: Any) -> bool:
    """True when a value does not satisfy a required field."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, set, frozenset, dict)):
        return len(value) == 0
    if isinstance(value, CompositeDate):
        return not value.is_complete()
    return False


def dump_client_value(value: Any) -> Any:
    """JSON-friendly form of a client value."""
    if isinstance(value, CompositeDate):
        return {"day": value.day, "month": value.month, "year": value.year}
    if isinstance(value, ExistingFile):
        return {"url": value.url}
    if isinstance(value, NewFile):
        return {"filename": value.filename, "size": len(value.data), "pending": True}
    if isinstance(value, tuple):
        return list(value)
    return value
