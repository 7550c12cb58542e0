"""Nullable scalar wrappers matching BigQuery column nullability

A NullX value is a ``(value, valid)`` pair. An invalid wrapper stands for SQL NULL,
whatever its ``value`` holds. Use them as dataclass field types on row models:
the schema inference marks them NULLABLE and row mapping wraps the column values.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Any, ClassVar, Optional, Union


@dataclass(frozen=True)
class NullValue:
    """Base class of the nullable wrappers"""

    value: Any = None
    valid: bool = False

    field_type: ClassVar[str] = "STRING"

    def to_bigquery(self) -> Any:
        """Value to send to BigQuery: the scalar, or None for NULL"""
        return self.value if self.valid else None

    @classmethod
    def from_bigquery(cls, value: Any) -> "NullValue":
        """Wrap a value read from a BigQuery row"""
        if value is None:
            return cls()
        return cls(value, True)

    def __str__(self) -> str:
        return str(self.value) if self.valid else "NULL"


@dataclass(frozen=True)
class NullInt64(NullValue):
    value: int = 0
    field_type: ClassVar[str] = "INTEGER"


@dataclass(frozen=True)
class NullFloat64(NullValue):
    value: float = 0.0
    field_type: ClassVar[str] = "FLOAT"


@dataclass(frozen=True)
class NullNumeric(NullValue):
    value: Decimal = Decimal(0)
    field_type: ClassVar[str] = "NUMERIC"


@dataclass(frozen=True)
class NullString(NullValue):
    value: str = ""
    field_type: ClassVar[str] = "STRING"


@dataclass(frozen=True)
class NullBool(NullValue):
    value: bool = False
    field_type: ClassVar[str] = "BOOLEAN"


@dataclass(frozen=True)
class NullTimestamp(NullValue):
    value: Optional[datetime] = None
    field_type: ClassVar[str] = "TIMESTAMP"


@dataclass(frozen=True)
class NullDate(NullValue):
    value: Optional[date] = None
    field_type: ClassVar[str] = "DATE"


@dataclass(frozen=True)
class NullTime(NullValue):
    value: Optional[time] = None
    field_type: ClassVar[str] = "TIME"


@dataclass(frozen=True)
class NullDateTime(NullValue):
    value: Optional[datetime] = None
    field_type: ClassVar[str] = "DATETIME"


NULL_TYPES: tuple[type[NullValue], ...] = (
    NullInt64,
    NullFloat64,
    NullNumeric,
    NullString,
    NullBool,
    NullTimestamp,
    NullDate,
    NullTime,
    NullDateTime,
)


def _is_zero(t: Union[datetime, date]) -> bool:
    """Whether t is the zero value (0001-01-01 00:00:00)"""
    if isinstance(t, datetime):
        return t.replace(tzinfo=None) == datetime.min
    return t == date.min


# type conversion functions

def int_to_null_int64(i: Optional[int]) -> NullInt64:
    if i is None:
        return NullInt64()
    return NullInt64(int(i), True)


def null_int64_to_int(i: NullInt64) -> Optional[int]:
    return i.value if i.valid else None


def float64_to_null_float64(f: Optional[float]) -> NullFloat64:
    if f is None:
        return NullFloat64()
    return NullFloat64(float(f), True)


def null_float64_to_float64(f: NullFloat64) -> Optional[float]:
    return f.value if f.valid else None


def string_to_null_string(s: Optional[str]) -> NullString:
    if s is None:
        return NullString()
    return NullString(s, True)


def null_string_to_string(s: NullString) -> Optional[str]:
    return s.value if s.valid else None


def time_to_null_timestamp(t: Optional[datetime]) -> NullTimestamp:
    """Naive datetimes are taken as UTC"""
    if t is None or _is_zero(t):
        return NullTimestamp()
    if t.tzinfo is None:
        t = t.replace(tzinfo=timezone.utc)
    return NullTimestamp(t, True)


def null_timestamp_to_time(t: NullTimestamp) -> Optional[datetime]:
    return t.value if t.valid else None


def date_to_null_timestamp(d: Optional[date]) -> NullTimestamp:
    """Timestamp at midnight UTC of the given date"""
    if d is None or _is_zero(d):
        return NullTimestamp()
    if isinstance(d, datetime):
        return time_to_null_timestamp(d)
    return NullTimestamp(datetime(d.year, d.month, d.day, tzinfo=timezone.utc), True)


def date_to_null_date(d: Optional[date]) -> NullDate:
    if d is None or _is_zero(d):
        return NullDate()
    if isinstance(d, datetime):
        d = d.date()
    return NullDate(d, True)


def time_to_null_date(t: Optional[datetime]) -> NullDate:
    if t is None or _is_zero(t):
        return NullDate()
    return NullDate(t.date(), True)


def time_to_null_time(t: Optional[datetime]) -> NullTime:
    """Wall clock time of t; the time zone is dropped"""
    if t is None or _is_zero(t):
        return NullTime()
    return NullTime(t.time(), True)


def time_to_null_datetime(t: Optional[datetime]) -> NullDateTime:
    """Civil date and time of t; the time zone is dropped"""
    if t is None or _is_zero(t):
        return NullDateTime()
    return NullDateTime(t.replace(tzinfo=None), True)


def time_civil_to_null_time(t: Optional[time]) -> NullTime:
    if t is None:
        return NullTime()
    return NullTime(t, True)


def bool_to_null_bool(b: Optional[bool]) -> NullBool:
    if b is None:
        return NullBool()
    return NullBool(bool(b), True)
