# =============================================================================
# Date/Time Stamps
# =============================================================================
# Converts between absolute instants (epoch seconds) and calendar fields.
#
# Key responsibilities:
#   - Calendar breakdown in two localities: local time zone or UTC
#   - Strict fixed-format parsing ("YYYYMMDD HH:MM:SS", no time zone)
#   - Month-safe date arithmetic (Jan 31 + 1 month = last day of February)
#   - String rendering, including the RFC 5322 "Date" header value
#
# Design notes:
#   - An instant never remembers a locality; every accessor takes one and
#     recomputes the breakdown through the platform calendar on each call
#   - DateTime is an immutable value: setters and arithmetic return new values
#   - Separators used for rendering are passed in explicitly (FormatOptions)
# =============================================================================

import calendar
import re
import time
from dataclasses import dataclass
from enum import Enum
from functools import total_ordering


class Locality(Enum):
    """Which calendar an instant is broken down in."""
    LOCAL = "local"     # Whatever time zone the process runs in
    UTC = "utc"


# English names only: RFC 5322 dates must not follow the process locale
MONTH_ABBREVIATIONS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)
MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)
WEEKDAY_ABBREVIATIONS = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")
WEEKDAY_NAMES = (
    "Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday",
)

SECONDS_PER_MINUTE = 60
SECONDS_PER_HOUR = 60 * 60
SECONDS_PER_DAY = 60 * 60 * 24
SECONDS_PER_WEEK = 60 * 60 * 24 * 7

# Length of "HH:MM:SS"
TIME_LENGTH = 8
# Index of the single space in "YYYYMMDD HH:MM:SS"
DATE_TIME_SEPARATOR_INDEX = 8


@dataclass(frozen=True)
class FormatOptions:
    """
    Separators used when rendering dates and times.

    Attributes:
        date_separator: Placed between year, month and day. When non-empty,
                        the month is rendered by its abbreviation
                        (e.g. "2024-Jan-31") instead of its number.
        time_separator: Placed between hours, minutes and seconds.
    """
    date_separator: str = ""
    time_separator: str = ":"


DEFAULT_FORMAT = FormatOptions()


# =============================================================================
# Parsing Helpers
# =============================================================================

_DIGITS = re.compile(r"[0-9]+")

# (column, upper bound, error reason) for each field of "HH:MM:SS"
_TIME_FIELDS = (
    (0, 23, "HOURS_OUT_OF_RANGE"),
    (3, 59, "MINUTES_OUT_OF_RANGE"),
    (6, 59, "SECONDS_OUT_OF_RANGE"),
)


def _parse_date(text: str) -> tuple[int, int, int]:
    """
    Parse the leading "YYYYMMDD" of a string into (year, month, day).

    The date is read as one integer and decomposed arithmetically. Only
    field ranges are checked here: an impossible day such as April 31 is
    left for the caller to catch.

    Raises:
        DateTimeError: STAMP_MISSING, YEAR_BELOW_1970, MONTH_OUT_OF_RANGE or
                       DAY_OUT_OF_RANGE.
    """
    match = _DIGITS.match(text)
    if match is None:
        raise DateTimeError(DateTimeErrorReason.STAMP_MISSING)

    year, rest = divmod(int(match.group()), 10000)
    month, day = divmod(rest, 100)

    if year < 1970:
        raise DateTimeError(DateTimeErrorReason.YEAR_BELOW_1970)
    if not 1 <= month <= 12:
        raise DateTimeError(DateTimeErrorReason.MONTH_OUT_OF_RANGE)
    if not 1 <= day <= 31:
        raise DateTimeError(DateTimeErrorReason.DAY_OUT_OF_RANGE)

    return year, month, day


def _parse_time(text: str) -> tuple[int, int, int]:
    """
    Parse exactly "HH:MM:SS" into (hours, minutes, seconds).

    Every field must sit at its exact column with two digits, and a field's
    error is also reported when the separator in front of it is wrong.
    Nothing may follow the seconds.

    Raises:
        DateTimeError: HOURS_OUT_OF_RANGE, MINUTES_OUT_OF_RANGE,
                       SECONDS_OUT_OF_RANGE or TRAILING_SYMBOLS_DISALLOWED.
    """
    values = []
    for column, upper, reason in _TIME_FIELDS:
        error = DateTimeError(DateTimeErrorReason[reason])
        if column and text[column - 1:column] != ":":
            raise error
        match = _DIGITS.match(text, column)
        if match is None or match.end() != column + 2:
            raise error
        value = int(match.group())
        if value > upper:
            raise error
        values.append(value)

    if len(text) != TIME_LENGTH:
        raise DateTimeError(DateTimeErrorReason.TRAILING_SYMBOLS_DISALLOWED)

    hours, minutes, seconds = values
    return hours, minutes, seconds


# =============================================================================
# Calendar Helpers
# =============================================================================

def _breakdown(stamp: int, locality: Locality) -> time.struct_time:
    """Break an epoch stamp down into calendar fields for a locality."""
    if locality is Locality.UTC:
        return time.gmtime(stamp)
    return time.localtime(stamp)


def _compose(
    year: int,
    month: int,
    day: int,
    hours: int,
    minutes: int,
    seconds: int,
    locality: Locality,
) -> int:
    """
    Compose calendar fields back into an epoch stamp.

    Days, hours, minutes and seconds past their natural range roll over
    into the next unit (day 31 of a 30-day month lands on the 1st).

    Raises:
        OverflowError, ValueError: If the platform cannot represent the result.
    """
    if locality is Locality.UTC:
        return calendar.timegm((year, month, day, hours, minutes, seconds))
    # tm_isdst = -1 lets the platform decide whether DST applies
    return int(time.mktime((year, month, day, hours, minutes, seconds, 0, 0, -1)))


def _normalize_month(year: int, month: int) -> tuple[int, int]:
    """Fold a month number outside 1..12 into the neighbouring years."""
    year_delta, index = divmod(month - 1, 12)
    return year + year_delta, index + 1


def _truncate(seconds: int, unit: int) -> int:
    """Integer division rounding toward zero."""
    return int(seconds / unit)


# =============================================================================
# DateTime
# =============================================================================

@total_ordering
class DateTime:
    """
    An absolute point in time with epoch-second resolution.

    Usage:
        >>> dt = DateTime.parse("20240131 10:30:00", Locality.UTC)
        >>> dt.add_months(1).date_str(Locality.UTC)
        '20240229'
        >>> rfc5322_date(DateTime.now())
        'Wed, 4 Jul 2018 14:21:58 +0200'

    Attributes:
        stamp: Seconds since 1970-01-01 00:00:00 UTC.
    """

    __slots__ = ("_stamp",)

    def __init__(self, stamp: int | float | None = None) -> None:
        self._stamp = int(time.time()) if stamp is None else int(stamp)

    @classmethod
    def now(cls) -> "DateTime":
        """Return the current instant."""
        return cls(time.time())

    @classmethod
    def parse(cls, text: str, locality: Locality = Locality.LOCAL) -> "DateTime":
        """
        Parse "YYYYMMDD HH:MM:SS" (no time zone) in the given locality.

        After composing the instant its date is derived again and compared
        with the parsed one, which rejects days the month does not have.

        Raises:
            DateTimeError: With the reason of the first defect found.
        """
        year, month, day = _parse_date(text)
        if text[DATE_TIME_SEPARATOR_INDEX:DATE_TIME_SEPARATOR_INDEX + 1] != " ":
            raise DateTimeError(DateTimeErrorReason.SPACE_ONLY_SEPARATOR_ALLOWED)
        hours, minutes, seconds = _parse_time(text[DATE_TIME_SEPARATOR_INDEX + 1:])

        try:
            stamp = _compose(year, month, day, hours, minutes, seconds, locality)
        except (OverflowError, ValueError) as e:
            raise DateTimeError(DateTimeErrorReason.INVALID_DATE_OR_TIME_FORMAT) from e

        result = cls(stamp)
        if result.datestamp(locality) != year * 10000 + month * 100 + day:
            raise DateTimeError(DateTimeErrorReason.BOGUS_DATE_STAMP)
        return result

    @property
    def stamp(self) -> int:
        return self._stamp

    # -------------------------------------------------------------------------
    # Setters (return new values)
    # -------------------------------------------------------------------------

    def with_date(self, value: str | int, locality: Locality = Locality.LOCAL) -> "DateTime":
        """
        Replace the date, keeping the time of day.

        Args:
            value: Either a "YYYYMMDD" string (strictly validated) or a
                   datestamp integer such as 20240131 (normalized, not
                   validated, like the arithmetic setters).
            locality: Calendar to apply the date in.

        Raises:
            DateTimeError: On a malformed string or an unrepresentable date.
        """
        if isinstance(value, str):
            year, month, day = _parse_date(value)
        else:
            year, rest = divmod(value, 10000)
            month, day = divmod(rest, 100)
            year, month = _normalize_month(year, month)

        fields = _breakdown(self._stamp, locality)
        try:
            stamp = _compose(
                year, month, day,
                fields.tm_hour, fields.tm_min, fields.tm_sec,
                locality,
            )
        except (OverflowError, ValueError) as e:
            raise DateTimeError(DateTimeErrorReason.INVALID_DATE_FORMAT) from e
        return DateTime(stamp)

    def with_time(self, value: str | int, locality: Locality = Locality.LOCAL) -> "DateTime":
        """
        Replace the time of day, keeping the date.

        Args:
            value: Either an "HH:MM:SS" string (strictly validated) or a
                   timestamp integer such as 93059 for 09:30:59.
            locality: Calendar to apply the time in.

        Raises:
            DateTimeError: On a malformed string or an unrepresentable time.
        """
        if isinstance(value, str):
            hours, minutes, seconds = _parse_time(value)
        else:
            hours, rest = divmod(value, 10000)
            minutes, seconds = divmod(rest, 100)

        fields = _breakdown(self._stamp, locality)
        try:
            stamp = _compose(
                fields.tm_year, fields.tm_mon, fields.tm_mday,
                hours, minutes, seconds,
                locality,
            )
        except (OverflowError, ValueError) as e:
            raise DateTimeError(DateTimeErrorReason.INVALID_TIME_FORMAT) from e
        return DateTime(stamp)

    # -------------------------------------------------------------------------
    # Arithmetic
    # -------------------------------------------------------------------------

    def add(self, seconds: int) -> "DateTime":
        return DateTime(self._stamp + seconds)

    def add_minutes(self, n: int) -> "DateTime":
        return self.add(n * SECONDS_PER_MINUTE)

    def add_hours(self, n: int) -> "DateTime":
        return self.add(n * SECONDS_PER_HOUR)

    def add_days(self, n: int) -> "DateTime":
        return self.add(n * SECONDS_PER_DAY)

    def add_weeks(self, n: int) -> "DateTime":
        return self.add(n * SECONDS_PER_WEEK)

    def add_months(self, n: int, locality: Locality = Locality.UTC) -> "DateTime":
        """
        Move by n calendar months, keeping the day of month when it exists.

        When the target month is shorter than the current day of month
        (Jan 31 -> Feb 31), the calendar rolls into the following month; the
        result is then moved back onto the last day of the target month.
        """
        fields = _breakdown(self._stamp, locality)
        year, month = _normalize_month(fields.tm_year, fields.tm_mon + n)

        moved = DateTime(_compose(
            year, month, fields.tm_mday,
            fields.tm_hour, fields.tm_min, fields.tm_sec,
            locality,
        ))

        rolled_day = moved.day(locality)
        if rolled_day != fields.tm_mday:
            moved = moved.add_days(-rolled_day)
        return moved

    def add_years(self, n: int, locality: Locality = Locality.UTC) -> "DateTime":
        return self.add_months(n * 12, locality)

    # -------------------------------------------------------------------------
    # Differences (positive when other is later)
    # -------------------------------------------------------------------------

    def delta(self, other: "DateTime | int") -> int:
        other_stamp = other.stamp if isinstance(other, DateTime) else other
        return other_stamp - self._stamp

    def delta_minutes(self, other: "DateTime") -> int:
        return _truncate(self.delta(other), SECONDS_PER_MINUTE)

    def delta_hours(self, other: "DateTime") -> int:
        return _truncate(self.delta(other), SECONDS_PER_HOUR)

    def delta_days(self, other: "DateTime") -> int:
        return _truncate(self.delta(other), SECONDS_PER_DAY)

    def delta_weeks(self, other: "DateTime") -> int:
        return _truncate(self.delta(other), SECONDS_PER_WEEK)

    # -------------------------------------------------------------------------
    # Calendar Fields
    # -------------------------------------------------------------------------

    def seconds(self, locality: Locality = Locality.LOCAL) -> int:
        return _breakdown(self._stamp, locality).tm_sec

    def minutes(self, locality: Locality = Locality.LOCAL) -> int:
        return _breakdown(self._stamp, locality).tm_min

    def hours(self, locality: Locality = Locality.LOCAL) -> int:
        return _breakdown(self._stamp, locality).tm_hour

    def day(self, locality: Locality = Locality.LOCAL) -> int:
        """Day of month (1-31)."""
        return _breakdown(self._stamp, locality).tm_mday

    def month(self, locality: Locality = Locality.LOCAL) -> int:
        """Month of year (1-12)."""
        return _breakdown(self._stamp, locality).tm_mon

    def year(self, locality: Locality = Locality.LOCAL) -> int:
        return _breakdown(self._stamp, locality).tm_year

    def weekday(self, locality: Locality = Locality.LOCAL) -> int:
        """Day of week, Sunday = 0."""
        # struct_time counts from Monday = 0
        return (_breakdown(self._stamp, locality).tm_wday + 1) % 7

    def yearday(self, locality: Locality = Locality.LOCAL) -> int:
        """Day of year, January 1st = 0."""
        return _breakdown(self._stamp, locality).tm_yday - 1

    def datestamp(self, locality: Locality = Locality.LOCAL) -> int:
        """Date as an integer, e.g. 20150131."""
        fields = _breakdown(self._stamp, locality)
        return fields.tm_year * 10000 + fields.tm_mon * 100 + fields.tm_mday

    def timestamp(self, locality: Locality = Locality.LOCAL) -> int:
        """Time of day as an integer, e.g. 93059 for 09:30:59."""
        fields = _breakdown(self._stamp, locality)
        return fields.tm_hour * 10000 + fields.tm_min * 100 + fields.tm_sec

    def utc_offset(self) -> int:
        """Offset of local time from UTC at this instant, in seconds (east positive)."""
        return time.localtime(self._stamp).tm_gmtoff

    def month_abbr(self, locality: Locality = Locality.LOCAL) -> str:
        return MONTH_ABBREVIATIONS[self.month(locality) - 1]

    def month_name(self, locality: Locality = Locality.LOCAL) -> str:
        return MONTH_NAMES[self.month(locality) - 1]

    def weekday_abbr(self, locality: Locality = Locality.LOCAL) -> str:
        return WEEKDAY_ABBREVIATIONS[self.weekday(locality)]

    def weekday_name(self, locality: Locality = Locality.LOCAL) -> str:
        return WEEKDAY_NAMES[self.weekday(locality)]

    # -------------------------------------------------------------------------
    # Rendering
    # -------------------------------------------------------------------------

    def time_str(
        self,
        locality: Locality = Locality.LOCAL,
        options: FormatOptions = DEFAULT_FORMAT,
    ) -> str:
        """Render the time of day, "HH:MM:SS" by default."""
        return _format_time(_breakdown(self._stamp, locality), options)

    def date_str(
        self,
        locality: Locality = Locality.LOCAL,
        options: FormatOptions = DEFAULT_FORMAT,
    ) -> str:
        """Render the date, "YYYYMMDD" by default."""
        return _format_date(_breakdown(self._stamp, locality), options)

    def datetime_str(
        self,
        locality: Locality = Locality.LOCAL,
        options: FormatOptions = DEFAULT_FORMAT,
    ) -> str:
        """Render date and time, "YYYYMMDD HH:MM:SS" by default."""
        fields = _breakdown(self._stamp, locality)
        return f"{_format_date(fields, options)} {_format_time(fields, options)}"

    # -------------------------------------------------------------------------
    # Dunder Methods
    # -------------------------------------------------------------------------

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DateTime):
            return NotImplemented
        return self._stamp == other._stamp

    def __lt__(self, other: "DateTime") -> bool:
        if not isinstance(other, DateTime):
            return NotImplemented
        return self._stamp < other._stamp

    def __hash__(self) -> int:
        return hash(self._stamp)

    def __str__(self) -> str:
        return self.datetime_str()

    def __repr__(self) -> str:
        return f"DateTime({self._stamp})"


def _format_time(fields: time.struct_time, options: FormatOptions) -> str:
    sep = options.time_separator
    return f"{fields.tm_hour:02d}{sep}{fields.tm_min:02d}{sep}{fields.tm_sec:02d}"


def _format_date(fields: time.struct_time, options: FormatOptions) -> str:
    sep = options.date_separator
    if sep:
        month = MONTH_ABBREVIATIONS[fields.tm_mon - 1]
    else:
        month = f"{fields.tm_mon:02d}"
    return f"{fields.tm_year}{sep}{month}{sep}{fields.tm_mday:02d}"


def rfc5322_date(dt: DateTime) -> str:
    """
    Render the value of an RFC 5322 "Date" header in local time.

    Example:
        "Wed, 4 Jul 2018 14:21:58 +0200"
    """
    fields = _breakdown(dt.stamp, Locality.LOCAL)
    offset = fields.tm_gmtoff
    sign = "+" if offset >= 0 else "-"
    offset_hours, offset_minutes = divmod(abs(offset) // SECONDS_PER_MINUTE, 60)

    return (
        f"{WEEKDAY_ABBREVIATIONS[(fields.tm_wday + 1) % 7]}, "
        f"{fields.tm_mday} {MONTH_ABBREVIATIONS[fields.tm_mon - 1]} {fields.tm_year} "
        f"{_format_time(fields, DEFAULT_FORMAT)} "
        f"{sign}{offset_hours:02d}{offset_minutes:02d}"
    )


# =============================================================================
# Exceptions
# =============================================================================

class DateTimeErrorReason(Enum):
    """Why a date/time string or composition was rejected."""
    SPACE_ONLY_SEPARATOR_ALLOWED = "space only separator allowed"
    INVALID_DATE_OR_TIME_FORMAT = "invalid date or time format"
    INVALID_DATE_FORMAT = "invalid date format"
    INVALID_TIME_FORMAT = "invalid time format"
    STAMP_MISSING = "stamp missing"
    BOGUS_DATE_STAMP = "bogus date stamp"
    YEAR_BELOW_1970 = "year below 1970"
    MONTH_OUT_OF_RANGE = "month out of range 01-12"
    DAY_OUT_OF_RANGE = "day out of range 01-31"
    SECONDS_OUT_OF_RANGE = "seconds out of range 00-59"
    MINUTES_OUT_OF_RANGE = "minutes out of range 00-59"
    HOURS_OUT_OF_RANGE = "hours out of range 00-23"
    TRAILING_SYMBOLS_DISALLOWED = "trailing symbols disallowed"


class DateTimeError(ValueError):
    """Raised when a date/time cannot be parsed or composed."""

    def __init__(self, reason: DateTimeErrorReason) -> None:
        super().__init__(reason.value)
        self.reason = reason
