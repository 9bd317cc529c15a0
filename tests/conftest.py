# =============================================================================
# Pytest Configuration and Fixtures
# =============================================================================
# Shared fixtures for the cmail test suite.
# =============================================================================

import calendar
import tempfile
import time
from pathlib import Path
from typing import Any

import pytest

from cmail.chrono import DateTime
from cmail.core import HeaderKind, HeaderTable
from cmail.smtp import (
    MimeDocument,
    SMTPClient,
    TransferCode,
    TransferResult,
    TransportOption,
)

# 2018-07-04 12:21:58 UTC, a Wednesday
FIXED_STAMP = calendar.timegm((2018, 7, 4, 12, 21, 58))

# POSIX zone strings, usable without a tz database
CET_ZONE = "CET-1CEST,M3.5.0,M10.5.0/3"
EST_ZONE = "EST5EDT,M3.2.0,M11.1.0"


class FakeTransport:
    """
    Recording transport.

    Stores accepted options, drains a streamed payload the way a real
    transport does, and answers every perform() with a canned result.
    """

    MESSAGE_OPTIONS = (
        TransportOption.MAIL_FROM,
        TransportOption.MAIL_RCPT,
        TransportOption.UPLOAD,
        TransportOption.READ_FUNCTION,
        TransportOption.HEADERS,
        TransportOption.MIME_POST,
    )

    def __init__(self, pull_size: int = 64 * 1024, result: TransferResult | None = None):
        self.pull_size = pull_size
        self.result = result or TransferResult(TransferCode.OK)
        self.options: dict[TransportOption, Any] = {}
        self.history: list[tuple[TransportOption, Any]] = []
        self.rejected: set[TransportOption] = set()
        self.mime_available = True
        self.performed: list[dict[TransportOption, Any]] = []
        self.payloads: list[bytes] = []
        self.aborted = False

    def configure(self, option: TransportOption, value: Any) -> bool:
        self.history.append((option, value))
        if option in self.rejected:
            return False
        self.options[option] = value
        return True

    def mime_init(self) -> MimeDocument | None:
        return MimeDocument() if self.mime_available else None

    async def perform(self) -> TransferResult:
        self.performed.append(dict(self.options))
        read = self.options.get(TransportOption.READ_FUNCTION)
        if self.options.get(TransportOption.UPLOAD) and read is not None:
            chunks = []
            while chunk := read(self.pull_size):
                chunks.append(chunk)
            self.payloads.append(b"".join(chunks))
        for option in self.MESSAGE_OPTIONS:
            self.options.pop(option, None)
        return self.result

    def abort(self) -> None:
        self.aborted = True


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def set_timezone(monkeypatch):
    """Switch the process time zone; restored after the test."""
    def apply(zone: str) -> None:
        monkeypatch.setenv("TZ", zone)
        time.tzset()

    yield apply
    monkeypatch.undo()
    time.tzset()


@pytest.fixture
def cet(set_timezone):
    """Run the test in Central European Time."""
    set_timezone(CET_ZONE)


@pytest.fixture
def fixed_clock():
    """A clock always returning FIXED_STAMP."""
    return lambda: DateTime(FIXED_STAMP)


@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest.fixture
def client(fake_transport, fixed_clock):
    """An SMTPClient on a fake transport, with a fixed clock."""
    return SMTPClient("smtp.example.com", fake_transport, clock=fixed_clock)


@pytest.fixture
def sample_headers():
    """A header table with From, To and Subject."""
    table = HeaderTable()
    table.add(HeaderKind.FROM, "me@example.com")
    table.add(HeaderKind.TO, "bob@example.com")
    table.add(HeaderKind.SUBJECT, "Hi")
    return table


@pytest.fixture
def attachment(temp_dir):
    """A small text file to attach."""
    path = temp_dir / "notes.txt"
    path.write_text("attached notes\n")
    return path
