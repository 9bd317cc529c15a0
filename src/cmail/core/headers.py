# =============================================================================
# Header Model
# =============================================================================
# The small, fixed set of headers a cmail message can carry, and the rules
# for setting them:
#
#   - To, Cc, Bcc are ADDITIVE: every value is appended, comma separated
#   - From, Subject, Date are OVERRIDABLE: the last value wins
#   - Address headers (From, To, Cc, Bcc) are enclosed in <...>
#   - Empty headers are never serialized, and neither is Bcc (its addresses
#     only reach the envelope, via the RecipientList)
# =============================================================================

from enum import Enum

from cmail.errors import RecipientAppendError


class HeaderKind(Enum):
    """
    Headers supported by cmail.

    NONE is returned by match() for names that are not supported; setting
    it is a no-op.
    """
    FROM = "From"
    TO = "To"
    CC = "Cc"
    BCC = "Bcc"
    SUBJECT = "Subject"
    DATE = "Date"
    NONE = ""

    @classmethod
    def match(cls, name: str) -> "HeaderKind":
        """
        Map a header name to its kind, ignoring case and surrounding spaces.

        Example:
            >>> HeaderKind.match("subject")
            <HeaderKind.SUBJECT: 'Subject'>
            >>> HeaderKind.match("X-Mailer")
            <HeaderKind.NONE: ''>
        """
        wanted = name.strip().lower()
        for kind in HEADER_ORDER:
            if kind.value.lower() == wanted:
                return kind
        return cls.NONE


# Serialization order
HEADER_ORDER = (
    HeaderKind.FROM,
    HeaderKind.TO,
    HeaderKind.CC,
    HeaderKind.BCC,
    HeaderKind.SUBJECT,
    HeaderKind.DATE,
)

ADDITIVE_HEADERS = frozenset({HeaderKind.TO, HeaderKind.CC, HeaderKind.BCC})
ADDRESS_HEADERS = frozenset({HeaderKind.FROM, HeaderKind.TO, HeaderKind.CC, HeaderKind.BCC})


class HeaderTable:
    """
    Stored header values, keyed by HeaderKind.

    Usage:
        >>> table = HeaderTable()
        >>> table.add(HeaderKind.TO, "a@example.com")
        >>> table.add(HeaderKind.TO, "b@example.com")
        >>> table.get(HeaderKind.TO)
        '<a@example.com>, <b@example.com>'
    """

    def __init__(self) -> None:
        self._values: dict[HeaderKind, str] = {kind: "" for kind in HEADER_ORDER}

    def add(self, kind: HeaderKind, value: str) -> None:
        """Store a value following the additive/overridable rules."""
        if kind is HeaderKind.NONE:
            return

        entry = f"<{value}>" if kind in ADDRESS_HEADERS else value
        if kind in ADDITIVE_HEADERS and self._values[kind]:
            self._values[kind] += ", " + entry
        else:
            self._values[kind] = entry

    def get(self, kind: HeaderKind) -> str:
        """Return the stored value, "" when unset."""
        return self._values.get(kind, "")

    def headers(self) -> tuple[tuple[HeaderKind, str], ...]:
        """
        Snapshot of the headers to serialize, in HEADER_ORDER.

        Empty values and Bcc are skipped.
        """
        return tuple(
            (kind, self._values[kind])
            for kind in HEADER_ORDER
            if kind is not HeaderKind.BCC and self._values[kind]
        )

    def lines(self) -> list[str]:
        """Serialized headers as "Name: value" strings (no line terminator)."""
        return [f"{kind.value}: {value}" for kind, value in self.headers()]

    def clear(self) -> None:
        for kind in HEADER_ORDER:
            self._values[kind] = ""

    def __bool__(self) -> bool:
        return any(self._values.values())

    def __repr__(self) -> str:
        stored = {kind.value: value for kind, value in self._values.items() if value}
        return f"HeaderTable({stored!r})"


class RecipientList:
    """
    Raw (unbracketed) envelope recipient addresses, in insertion order.

    Attributes:
        limit: Maximum number of addresses accepted, None for no limit.
               Many servers cap recipients per message (RFC 5321 only
               guarantees 100).
    """

    def __init__(self, limit: int | None = None) -> None:
        self.limit = limit
        self._addresses: list[str] = []

    def append(self, address: str) -> None:
        """
        Add an address.

        Raises:
            RecipientAppendError: If the list is full, or the address is
                                  empty or would break the RCPT command.
        """
        if self.limit is not None and len(self._addresses) >= self.limit:
            raise RecipientAppendError(
                f"Recipient limit of {self.limit} reached, cannot add {address!r}"
            )
        if not address or "\r" in address or "\n" in address:
            raise RecipientAppendError(f"Cannot add recipient {address!r}")
        self._addresses.append(address)

    def clear(self) -> None:
        self._addresses.clear()

    def __iter__(self):
        return iter(self._addresses)

    def __len__(self) -> int:
        return len(self._addresses)

    def __bool__(self) -> bool:
        return bool(self._addresses)

    def __repr__(self) -> str:
        return f"RecipientList({self._addresses!r})"
