"""Multi-format timestamp resolution for MongoDB log lines.

Formats are tried in a fixed order and the first one that parses wins:
  1. ISO 8601 with numeric offset and optional fraction
  2. ISO 8601 UTC ("Z"), second precision with optional fraction
  3. ctime without year or milliseconds
  4. ctime without year, with milliseconds

The ctime layouts carry no year. The reference year is attached and, if
that puts the event in the future, the previous year is used instead.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timezone

# strptime's %f stops at microseconds; mongod may write up to nanoseconds.
_LONG_FRACTION_RE = re.compile(r"(\.\d{6})\d+")

# Any leap year works here, it only has to accept Feb 29 before the real
# year is attached.
_PLACEHOLDER_YEAR = 2000


class TimestampError(ValueError):
    """Base class for timestamp resolution failures."""


class MissingTimestampError(TimestampError):
    """The parsed fields carry no string "timestamp" value."""


class UnparseableTimestampError(TimestampError):
    """The timestamp matched none of the known formats."""

    def __init__(self, value: str, last_error: Exception | None = None):
        super().__init__(f"unparseable timestamp {value!r}: {last_error}")
        self.value = value
        self.last_error = last_error


@dataclass(frozen=True)
class TimestampFormat:
    name: str
    layouts: tuple[str, ...]
    has_year: bool = True
    utc: bool = False   # layout has a literal "Z" rather than %z
    guard: re.Pattern | None = None


ISO8601_LOCAL = TimestampFormat(
    "iso8601_local",
    ("%Y-%m-%dT%H:%M:%S.%f%z", "%Y-%m-%dT%H:%M:%S%z"),
    # %z would also take "Z"; this layout only carries numeric offsets
    guard=re.compile(r".*[+-]\d{2}:?\d{2}$"),
)
ISO8601_UTC = TimestampFormat(
    "iso8601_utc",
    ("%Y-%m-%dT%H:%M:%SZ", "%Y-%m-%dT%H:%M:%S.%fZ"),
    utc=True,
)
CTIME_NO_MS = TimestampFormat(
    "ctime_no_ms",
    ("%a %b %d %H:%M:%S", "%b %d %H:%M:%S"),
    has_year=False,
)
CTIME = TimestampFormat(
    "ctime",
    ("%a %b %d %H:%M:%S.%f", "%b %d %H:%M:%S.%f"),
    has_year=False,
)

TIMESTAMP_FORMATS: tuple[TimestampFormat, ...] = (
    ISO8601_LOCAL,
    ISO8601_UTC,
    CTIME_NO_MS,
    CTIME,
)


def _parse_with(fmt: TimestampFormat, value: str) -> datetime:
    """Parse value with the first matching layout of fmt, or raise ValueError."""
    if fmt.guard is not None and not fmt.guard.match(value):
        raise ValueError(f"{value!r} does not match format {fmt.name!r}")
    last_error: ValueError | None = None
    for layout in fmt.layouts:
        try:
            if fmt.has_year:
                parsed = datetime.strptime(value, layout)
            else:
                parsed = datetime.strptime(f"{_PLACEHOLDER_YEAR} {value}", f"%Y {layout}")
        except ValueError as e:
            if fmt.has_year:
                last_error = e
            else:
                # keep the placeholder year out of the message
                last_error = ValueError(f"time data {value!r} does not match format {layout!r}")
            continue
        if fmt.utc or parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    raise last_error


def _with_year(ts: datetime, year: int) -> datetime:
    try:
        return ts.replace(year=year)
    except ValueError:
        # Feb 29 in a non-leap year
        return ts.replace(year=year, month=3, day=1)


def infer_year(ts: datetime, now: datetime) -> datetime:
    """Attach now's year to ts; step back one year if that lands after now."""
    candidate = _with_year(ts, now.year)
    if candidate > now:
        return _with_year(ts, now.year - 1)
    return candidate


def resolve_timestamp(values: dict, now: datetime,
                      formats: tuple[TimestampFormat, ...] = TIMESTAMP_FORMATS) -> datetime:
    """Resolve values["timestamp"] into an aware datetime.

    Raises MissingTimestampError when there is no string timestamp and
    UnparseableTimestampError when no format accepts it.
    """
    raw = values.get("timestamp")
    if not isinstance(raw, str):
        raise MissingTimestampError("timestamp missing from logline")

    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    value = _LONG_FRACTION_RE.sub(r"\1", raw.strip())
    last_error: ValueError | None = None
    for fmt in formats:
        try:
            parsed = _parse_with(fmt, value)
        except ValueError as e:
            last_error = e
            continue
        if not fmt.has_year:
            return infer_year(parsed, now)
        return parsed

    raise UnparseableTimestampError(raw, last_error) from last_error
