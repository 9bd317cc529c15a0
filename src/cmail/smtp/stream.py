# =============================================================================
# Payload Stream
# =============================================================================
# Pull-driven producer of a plain-text message for the transport.
#
# The transport repeatedly asks for "up to N bytes" and the stream answers
# with the next piece of the payload:
#
#   HEADERS    one "Name: value" line per pull (Bcc and empty headers skipped)
#   SEPARATOR  the single blank line that ends the header block (RFC 5322)
#   BODY       slices of the body, each followed by CRLF
#
# An empty result means the payload is complete, and every later pull
# returns an empty result too. Each chunk holds at most one pull size of
# header or body text; the stream itself never copies the body as a whole.
#
# Known quirks:
#   - A header line longer than the pull size is truncated (lossy)
#   - Every body slice gets a CRLF, including the one that reaches the end
# =============================================================================

import logging
from enum import Enum, auto
from typing import Callable

from cmail.core.headers import HEADER_ORDER, HeaderKind, HeaderTable

logger = logging.getLogger(__name__)

CRLF = b"\r\n"


class StreamPhase(Enum):
    HEADERS = auto()
    SEPARATOR = auto()
    BODY = auto()


class PayloadStream:
    """
    State machine serializing headers and body in bounded chunks.

    Not reentrant: one stream serves one send.

    Usage:
        >>> stream = PayloadStream(draft.headers, b"Hello")
        >>> while chunk := stream.pull(65536):
        ...     connection.write(chunk)

    Attributes:
        phase: Current StreamPhase.
        header_index: Position in HEADER_ORDER of the next header to emit.
        separator_sent: Whether the blank separator line was emitted.
        position: Offset of the next body byte to emit.
        exhausted: Whether the end of the payload was reached.
    """

    def __init__(
        self,
        headers: HeaderTable,
        body: bytes,
        on_exhausted: Callable[[], None] | None = None,
    ) -> None:
        """
        Args:
            headers: Header values, read lazily as the stream advances.
            body: Message body, sent as-is.
            on_exhausted: Called once when the end of the payload is reached.
        """
        self._headers = headers
        self._body = body
        self._on_exhausted = on_exhausted
        self.position = 0
        self.exhausted = False
        self.reset()

    def reset(self) -> None:
        """Return to the first header. The body position is left alone."""
        self.phase = StreamPhase.HEADERS
        self.header_index = 0
        self.separator_sent = False

    @property
    def remaining(self) -> int:
        """Body bytes not yet emitted."""
        return len(self._body) - self.position

    def pull(self, max_bytes: int) -> bytes:
        """
        Produce the next chunk of the payload.

        Args:
            max_bytes: Capacity requested by the transport. Header and body
                       text in a chunk never exceeds it; the CRLF terminator
                       comes on top.

        Returns:
            The next chunk, or b"" once the payload is complete.
        """
        if max_bytes < 1 or self.exhausted:
            return b""

        if self.phase is StreamPhase.HEADERS:
            line = self._next_header_line()
            if line is not None:
                if len(line) > max_bytes:
                    logger.debug(f"Header size > max allowed ({max_bytes}): {line!r}")
                    line = line[:max_bytes]
                logger.debug(f"Uploading: {line!r}")
                return line + CRLF
            self.phase = StreamPhase.SEPARATOR

        if self.phase is StreamPhase.SEPARATOR:
            self.separator_sent = True
            self.phase = StreamPhase.BODY
            return CRLF

        left = self.remaining
        logger.debug(f"#bytes left to send: {left}, max: {max_bytes}")
        if left == 0:
            self._exhaust()
            return b""

        chunk = self._body[self.position:self.position + max_bytes]
        self.position += len(chunk)
        logger.debug(f"Uploading {len(chunk)} body bytes")
        return chunk + CRLF

    def _next_header_line(self) -> bytes | None:
        """Advance past Bcc and empty headers; return the next line, if any."""
        while self.header_index < len(HEADER_ORDER):
            kind = HEADER_ORDER[self.header_index]
            self.header_index += 1
            value = self._headers.get(kind)
            if kind is HeaderKind.BCC or not value:
                continue
            return f"{kind.value}: {value}".encode("utf-8")
        return None

    def _exhaust(self) -> None:
        self.reset()
        self.exhausted = True
        if self._on_exhausted is not None:
            self._on_exhausted()
