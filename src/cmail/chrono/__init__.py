# =============================================================================
# Chrono Module
# =============================================================================
# Calendar engine used to stamp outgoing mail.
#
# Features:
#   - Instant <-> calendar field conversion (local time or UTC)
#   - Strict "YYYYMMDD HH:MM:SS" parsing with field-level errors
#   - Month-safe arithmetic
#   - RFC 5322 "Date" header rendering
# =============================================================================

from cmail.chrono.stamp import (
    DEFAULT_FORMAT,
    DateTime,
    DateTimeError,
    DateTimeErrorReason,
    FormatOptions,
    Locality,
    rfc5322_date,
)

__all__ = [
    "DEFAULT_FORMAT",
    "DateTime",
    "DateTimeError",
    "DateTimeErrorReason",
    "FormatOptions",
    "Locality",
    "rfc5322_date",
]
