# =============================================================================
# SMTP Transport
# =============================================================================
# The network side of sending: the session configures options, then asks
# the transport to perform one transfer and reports back a status.
#
# Key responsibilities:
#   - Option store (URL, credentials, envelope, payload source)
#   - Connection management with implicit TLS (smtps) or STARTTLS (smtp)
#   - Pulling a streamed payload through the configured read function
#   - Materializing MIME documents (file reads, transfer encoders)
#   - Mapping aiosmtplib failures onto TransferCode values
#   - Timeouts and abort of an in-flight transfer
#
# Delivery failures are never raised: perform() always returns a
# TransferResult. There is no retry.
#
# Uses aiosmtplib for async operations.
# =============================================================================

import asyncio
import logging
import mimetypes
from dataclasses import dataclass, field
from email import encoders
from email.message import Message as EmailMessage
from email.mime.base import MIMEBase
from email.mime.multipart import MIMEMultipart
from enum import Enum, IntEnum, auto
from pathlib import Path
from typing import Any, Callable, Protocol
from urllib.parse import urlsplit

import aiosmtplib

logger = logging.getLogger(__name__)


class TransportOption(Enum):
    """Options a session can set on a transport."""
    URL = auto()            # "smtp://host[:port]" or "smtps://host[:port]"
    USERNAME = auto()
    PASSWORD = auto()
    VERIFY_PEER = auto()    # Validate the server certificate
    TIMEOUT = auto()        # Seconds per SMTP operation
    MAIL_FROM = auto()      # Envelope sender (bare address)
    MAIL_RCPT = auto()      # Envelope recipients (bare addresses)
    UPLOAD = auto()         # Payload comes from READ_FUNCTION
    READ_FUNCTION = auto()  # Callable[[int], bytes], b"" ends the payload
    HEADERS = auto()        # "Name: value" lines for a MIME transfer
    MIME_POST = auto()      # MimeDocument to send


class TransferCode(IntEnum):
    """Outcome of a transfer; OK is the only success."""
    OK = 0
    UNSUPPORTED_PROTOCOL = 1
    URL_MALFORMAT = 2
    COULDNT_CONNECT = 3
    LOGIN_DENIED = 4
    SENDER_REFUSED = 5
    RECIPIENT_REFUSED = 6
    SEND_ERROR = 7
    READ_ERROR = 8
    OPERATION_TIMEDOUT = 9
    ABORTED = 10


@dataclass(frozen=True)
class TransferResult:
    """
    Status of a finished transfer.

    Attributes:
        code: TransferCode of the outcome.
        error: Human-readable detail, empty on success.
    """
    code: TransferCode
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.code is TransferCode.OK

    def __str__(self) -> str:
        if self.ok:
            return "No error"
        return f"{self.code.name.replace('_', ' ').lower()}: {self.error}"


# =============================================================================
# MIME Documents
# =============================================================================

# Transfer encoders, by name. Parts are only tagged with a name; the
# transform itself is applied here, when the document is materialized.
ENCODERS: dict[str, Callable[[EmailMessage], None]] = {
    "base64": encoders.encode_base64,
}


@dataclass
class MimePart:
    """
    One body part: either in-memory data or a file read at transfer time.

    Attributes:
        data: Raw payload bytes.
        path: File to attach; read only when the transfer is performed.
        encoder: Name of the transfer encoder (a key of ENCODERS).
    """
    data: bytes | None = None
    path: Path | None = None
    encoder: str | None = None

    @property
    def is_complete(self) -> bool:
        has_source = (self.data is None) != (self.path is None)
        return has_source and (self.encoder is None or self.encoder in ENCODERS)


@dataclass
class MimeDocument:
    """A multipart/mixed container, built by the session, sent by the transport."""
    parts: list[MimePart] = field(default_factory=list)

    def add_part(self) -> MimePart:
        part = MimePart()
        self.parts.append(part)
        return part

    @property
    def is_complete(self) -> bool:
        return all(part.is_complete for part in self.parts)


# =============================================================================
# Transport Contract
# =============================================================================

class Transport(Protocol):
    """What an SMTP session needs from the network layer."""

    def configure(self, option: TransportOption, value: Any) -> bool:
        """Set an option; False when the value is rejected."""
        ...

    def mime_init(self) -> MimeDocument | None:
        """Create an empty MIME container, None if that is not possible."""
        ...

    async def perform(self) -> TransferResult:
        """Run one transfer with the configured options."""
        ...

    def abort(self) -> None:
        """Cancel the transfer in flight, if any."""
        ...


def _is_string_list(value: Any) -> bool:
    return isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value)


_OPTION_CHECKS: dict[TransportOption, Callable[[Any], bool]] = {
    TransportOption.URL: lambda v: isinstance(v, str) and bool(v),
    TransportOption.USERNAME: lambda v: isinstance(v, str),
    TransportOption.PASSWORD: lambda v: isinstance(v, str),
    TransportOption.VERIFY_PEER: lambda v: isinstance(v, bool),
    TransportOption.TIMEOUT: lambda v: isinstance(v, (int, float)) and v > 0,
    TransportOption.MAIL_FROM: lambda v: isinstance(v, str),
    TransportOption.MAIL_RCPT: _is_string_list,
    TransportOption.UPLOAD: lambda v: isinstance(v, bool),
    TransportOption.READ_FUNCTION: callable,
    TransportOption.HEADERS: _is_string_list,
    TransportOption.MIME_POST: lambda v: isinstance(v, MimeDocument) and v.is_complete,
}

# Options describing one message; cleared after every transfer
_MESSAGE_OPTIONS = (
    TransportOption.MAIL_FROM,
    TransportOption.MAIL_RCPT,
    TransportOption.UPLOAD,
    TransportOption.READ_FUNCTION,
    TransportOption.HEADERS,
    TransportOption.MIME_POST,
)

DEFAULT_PORTS = {"smtp": 25, "smtps": 465}


# =============================================================================
# aiosmtplib Transport
# =============================================================================

class SMTPTransport:
    """
    Transport implementation on top of aiosmtplib.

    Usage:
        >>> transport = SMTPTransport()
        >>> transport.configure(TransportOption.URL, "smtps://smtp.example.com")
        >>> transport.configure(TransportOption.MAIL_RCPT, ["bob@example.com"])
        >>> transport.configure(TransportOption.UPLOAD, True)
        >>> transport.configure(TransportOption.READ_FUNCTION, stream.pull)
        >>> result = await transport.perform()

    Attributes:
        pull_size: Bytes requested per call of the read function.
    """

    # Timeout for SMTP operations (seconds)
    TIMEOUT = 30

    # Capacity offered to the read function on each pull
    PULL_SIZE = 64 * 1024

    def __init__(self, *, timeout: float = TIMEOUT, pull_size: int = PULL_SIZE) -> None:
        self.pull_size = pull_size
        self._options: dict[TransportOption, Any] = {
            TransportOption.TIMEOUT: timeout,
            TransportOption.VERIFY_PEER: True,
        }
        self._task: asyncio.Task | None = None
        self._aborted = False

    def configure(self, option: TransportOption, value: Any) -> bool:
        check = _OPTION_CHECKS.get(option)
        if check is None or not check(value):
            logger.warning(f"Rejected transport option {option.name}")
            return False
        self._options[option] = value
        return True

    def option(self, option: TransportOption, default: Any = None) -> Any:
        """Return the configured value of an option."""
        return self._options.get(option, default)

    def mime_init(self) -> MimeDocument | None:
        return MimeDocument()

    def abort(self) -> None:
        if self._task is not None and not self._task.done():
            logger.info("Aborting SMTP transfer")
            self._aborted = True
            self._task.cancel()

    async def perform(self) -> TransferResult:
        """
        Connect, authenticate, and deliver the configured payload.

        Returns:
            TransferResult; never raises for delivery problems.
        """
        self._aborted = False
        self._task = asyncio.current_task()
        try:
            result = await self._transfer()
        except asyncio.CancelledError:
            if not self._aborted:
                raise
            self._task.uncancel()
            result = TransferResult(TransferCode.ABORTED, "Transfer aborted")
        finally:
            self._task = None
            for option in _MESSAGE_OPTIONS:
                self._options.pop(option, None)

        if result.ok:
            logger.info("SMTP transfer done")
        else:
            logger.info(f"SMTP transfer failed: {result}")
        return result

    async def _transfer(self) -> TransferResult:
        url = self._options.get(TransportOption.URL, "")
        parts = urlsplit(url)
        scheme = parts.scheme.lower()
        if scheme not in DEFAULT_PORTS:
            return TransferResult(TransferCode.UNSUPPORTED_PROTOCOL, f"Unsupported URL scheme in {url!r}")
        try:
            port = parts.port or DEFAULT_PORTS[scheme]
        except ValueError as e:
            return TransferResult(TransferCode.URL_MALFORMAT, f"{url!r}: {e}")
        if not parts.hostname:
            return TransferResult(TransferCode.URL_MALFORMAT, f"No host in {url!r}")

        # Attachments are read before connecting so a bad path fails fast
        message = None
        document = self._options.get(TransportOption.MIME_POST)
        if document is not None:
            try:
                message = self._build_mime_message(document)
            except OSError as e:
                return TransferResult(TransferCode.READ_ERROR, f"Failed to read attachment: {e}")
        elif not (self._options.get(TransportOption.UPLOAD) and TransportOption.READ_FUNCTION in self._options):
            return TransferResult(TransferCode.SEND_ERROR, "Nothing to send")

        use_tls = scheme == "smtps"
        logger.info(f"Connecting to SMTP {parts.hostname}:{port}")
        client = aiosmtplib.SMTP(
            hostname=parts.hostname,
            port=port,
            use_tls=use_tls,
            start_tls=False if use_tls else None,
            validate_certs=self._options[TransportOption.VERIFY_PEER],
            timeout=self._options[TransportOption.TIMEOUT],
        )

        sender = self._options.get(TransportOption.MAIL_FROM, "")
        recipients = list(self._options.get(TransportOption.MAIL_RCPT, []))
        try:
            await client.connect()
            logger.debug("SMTP connection established")

            username = self._options.get(TransportOption.USERNAME)
            if username:
                logger.debug(f"Authenticating as {username}")
                await client.login(username, self._options.get(TransportOption.PASSWORD, ""))

            if message is not None:
                await client.send_message(message, sender=sender, recipients=recipients)
            else:
                await client.sendmail(sender, recipients, self._drain())

        except aiosmtplib.SMTPAuthenticationError as e:
            return TransferResult(TransferCode.LOGIN_DENIED, str(e))
        except aiosmtplib.SMTPTimeoutError as e:
            return TransferResult(TransferCode.OPERATION_TIMEDOUT, str(e))
        except aiosmtplib.SMTPConnectError as e:
            return TransferResult(TransferCode.COULDNT_CONNECT, str(e))
        except aiosmtplib.SMTPSenderRefused as e:
            return TransferResult(TransferCode.SENDER_REFUSED, str(e))
        except aiosmtplib.SMTPRecipientsRefused as e:
            return TransferResult(TransferCode.RECIPIENT_REFUSED, str(e))
        except aiosmtplib.SMTPException as e:
            return TransferResult(TransferCode.SEND_ERROR, str(e))
        finally:
            await self._disconnect(client)

        return TransferResult(TransferCode.OK)

    def _drain(self) -> bytes:
        """Pull the streamed payload until the read function signals the end."""
        read = self._options[TransportOption.READ_FUNCTION]
        chunks = []
        while chunk := read(self.pull_size):
            chunks.append(chunk)
        return b"".join(chunks)

    def _build_mime_message(self, document: MimeDocument) -> MIMEMultipart:
        """
        Materialize a MimeDocument as a multipart/mixed message.

        Raises:
            OSError: If an attached file cannot be read.
        """
        message = MIMEMultipart("mixed")
        for line in self._options.get(TransportOption.HEADERS, []):
            name, _, value = line.partition(":")
            message[name.strip()] = value.strip()

        for part in document.parts:
            message.attach(_materialize_part(part))
        return message

    async def _disconnect(self, client: aiosmtplib.SMTP) -> None:
        if client.is_connected:
            try:
                logger.debug("Disconnecting from SMTP")
                await client.quit()
            except aiosmtplib.SMTPException as e:
                logger.warning(f"Error during SMTP disconnect: {e}")


def _materialize_part(part: MimePart) -> MIMEBase:
    if part.path is not None:
        data = part.path.read_bytes()
        content_type, encoding = mimetypes.guess_type(part.path.name)
        if content_type is None or encoding is not None:
            content_type = "application/octet-stream"
        maintype, subtype = content_type.split("/", 1)
        mime_part = MIMEBase(maintype, subtype)
        mime_part.set_payload(data)
        mime_part.add_header("Content-Disposition", "attachment", filename=part.path.name)
    else:
        mime_part = MIMEBase("text", "plain", charset="utf-8")
        mime_part.set_payload(part.data)

    if part.encoder is not None:
        ENCODERS[part.encoder](mime_part)
    return mime_part
