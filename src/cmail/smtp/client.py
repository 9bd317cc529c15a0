# =============================================================================
# SMTP Client
# =============================================================================
# The mail session: collects headers, recipients and attachments, then
# hands one message at a time to a transport.
#
# Key responsibilities:
#   - Header/recipient bookkeeping (through EmailDraft)
#   - Stamping the "Date" header
#   - Choosing the payload format:
#       * plain text, streamed on demand (PayloadStream), or
#       * MIME multipart with base64 parts (MimeComposer) when there are
#         attachments or the body is not pure ASCII
#   - Setting transport options and reporting the transfer status
#   - Resetting the draft after every send, so the session can be reused
#
# A session is not reentrant: one send() at a time.
# =============================================================================

import logging
from pathlib import Path
from typing import Callable

from cmail.chrono import DateTime, rfc5322_date
from cmail.core import EmailDraft, HeaderKind, HeaderTable, RecipientList
from cmail.errors import HostUnsetError, RecipientsUnsetError, TransportSetupError
from cmail.smtp.mime import MimeComposer
from cmail.smtp.stream import PayloadStream
from cmail.smtp.transport import SMTPTransport, TransferCode, TransferResult, Transport, TransportOption

logger = logging.getLogger(__name__)


def _bare_address(value: str) -> str:
    """Strip the angle brackets the header table puts around addresses."""
    if value.startswith("<") and value.endswith(">"):
        return value[1:-1]
    return value


class SMTPClient:
    """
    SMTP mail session.

    Usage:
        >>> client = SMTPClient("smtp.example.com")
        >>> client.ssl("user@example.com", "secret")
        >>> client.set_sender("user@example.com").set_subject("Hello")
        >>> client.add_to("bob@example.com")
        >>> result = await client.send("Message ...\\nBest regards")
        >>> result.ok
        True

    Headers, recipients and attachments must be set again after each send.

    Attributes:
        transport: Network collaborator performing the transfers.
        draft: Composition state of the next message.
        verify_certs: Whether the server certificate is validated.
        result: Status of the last transfer, None before the first send.
    """

    def __init__(
        self,
        host: str = "",
        transport: Transport | None = None,
        *,
        max_recipients: int | None = None,
        verify_certs: bool = True,
        clock: Callable[[], DateTime] = DateTime.now,
    ) -> None:
        """
        Initialize the session.

        Args:
            host: SMTP server, optionally "host:port".
            transport: Transport to use; an SMTPTransport when omitted.
            max_recipients: Cap on envelope recipients per message.
            verify_certs: Validate the server certificate.
            clock: Source of the instant used for the "Date" header.
        """
        self.host = host
        self.transport = transport if transport is not None else SMTPTransport()
        self.draft = EmailDraft(recipients=RecipientList(max_recipients))
        self.verify_certs = verify_certs
        self.result: TransferResult | None = None
        self._clock = clock
        self._username = ""
        self._password = ""
        self._scheme = "smtp://"
        self._stream: PayloadStream | None = None

    # -------------------------------------------------------------------------
    # Connection Settings
    # -------------------------------------------------------------------------

    def ssl(self, username: str, password: str) -> "SMTPClient":
        """Authenticate with username/password over implicit TLS (smtps://)."""
        self._username = username
        self._password = password
        self._scheme = "smtps://"
        return self

    def ssl_reset(self) -> "SMTPClient":
        """Go back to unauthenticated smtp://."""
        self._username = ""
        self._password = ""
        self._scheme = "smtp://"
        return self

    @property
    def is_ssl(self) -> bool:
        return self._scheme == "smtps://"

    @property
    def url(self) -> str:
        return self._scheme + self.host

    # -------------------------------------------------------------------------
    # Headers and Attachments
    # -------------------------------------------------------------------------

    def add_header(self, kind: HeaderKind, value: str) -> "SMTPClient":
        """
        Set a header (see HeaderTable for the additive/overridable rules).

        Raises:
            RecipientAppendError: If a To/Cc/Bcc address cannot be added.
        """
        self.draft.add_header(kind, value)
        return self

    def set_sender(self, address: str) -> "SMTPClient":
        return self.add_header(HeaderKind.FROM, address)

    def set_subject(self, subject: str) -> "SMTPClient":
        return self.add_header(HeaderKind.SUBJECT, subject)

    def add_to(self, address: str) -> "SMTPClient":
        return self.add_header(HeaderKind.TO, address)

    def add_cc(self, address: str) -> "SMTPClient":
        return self.add_header(HeaderKind.CC, address)

    def add_bcc(self, address: str) -> "SMTPClient":
        return self.add_header(HeaderKind.BCC, address)

    @property
    def headers(self) -> HeaderTable:
        return self.draft.headers

    @property
    def sender(self) -> str:
        return self.draft.headers.get(HeaderKind.FROM)

    @property
    def subject(self) -> str:
        return self.draft.headers.get(HeaderKind.SUBJECT)

    @property
    def to(self) -> str:
        return self.draft.headers.get(HeaderKind.TO)

    @property
    def cc(self) -> str:
        return self.draft.headers.get(HeaderKind.CC)

    @property
    def bcc(self) -> str:
        return self.draft.headers.get(HeaderKind.BCC)

    def attach_file(self, path: str | Path) -> "SMTPClient":
        self.draft.attach_file(path)
        return self

    # -------------------------------------------------------------------------
    # Transfer Status
    # -------------------------------------------------------------------------

    @property
    def rc(self) -> TransferCode | None:
        """Code of the last transfer."""
        return self.result.code if self.result is not None else None

    @property
    def error(self) -> str:
        """Readable status of the last transfer."""
        return str(self.result) if self.result is not None else ""

    # -------------------------------------------------------------------------
    # Sending
    # -------------------------------------------------------------------------

    async def send(self, body: str | bytes) -> TransferResult:
        """
        Send the composed message with the given body.

        Plain ASCII bodies without attachments are streamed as text; anything
        else goes out as MIME with base64 parts. After the preconditions
        pass, the draft is reset whatever the outcome.

        Args:
            body: Message body; str is encoded as UTF-8.

        Returns:
            The transport's TransferResult, unchanged.

        Raises:
            HostUnsetError: If no host is configured.
            RecipientsUnsetError: If no To/Cc/Bcc recipient was added.
            TransportSetupError: If the transport rejects an option.
            MimeInitError, MimePartSetupError: If MIME assembly fails.
        """
        if not self.host:
            raise HostUnsetError("SMTP host is not set")
        if not self.draft.recipients:
            raise RecipientsUnsetError("No recipients specified")

        payload = body.encode("utf-8") if isinstance(body, str) else bytes(body)
        date = rfc5322_date(self._clock())
        logger.info(f"Generated date: '{date}'")
        self.draft.add_header(HeaderKind.DATE, date)

        try:
            if self.draft.attachments or not payload.isascii():
                self._setup_send_options(mime=True)
                MimeComposer(self.transport).compose(
                    self.draft.headers, payload, self.draft.attachments
                )
            else:
                self._stream = PayloadStream(
                    self.draft.headers, payload, on_exhausted=self.draft.reset
                )
                self._setup_send_options(mime=False)

            logger.info(f"Sending to: {self.url}")
            self.result = await self.transport.perform()
        finally:
            self._stream = None
            self.draft.reset()

        if self.result.ok:
            logger.info("Sending done")
        else:
            logger.info(f"Returned error: {self.result}")
        return self.result

    def abort(self) -> None:
        """Abort the transfer in flight (delegated to the transport)."""
        self.transport.abort()

    def _setup_send_options(self, *, mime: bool) -> None:
        """
        Configure the transport for the next transfer.

        Raises:
            TransportSetupError: If any option is rejected.
        """
        configure = self.transport.configure
        accepted = []

        if not mime:
            accepted.append(configure(TransportOption.READ_FUNCTION, self._stream.pull))
            accepted.append(configure(TransportOption.UPLOAD, True))
        accepted.append(configure(TransportOption.URL, self.url))
        accepted.append(configure(TransportOption.VERIFY_PEER, self.verify_certs))

        if self.is_ssl:
            accepted.append(configure(TransportOption.USERNAME, self._username))
            accepted.append(configure(TransportOption.PASSWORD, self._password))

        if self.sender:
            accepted.append(configure(TransportOption.MAIL_FROM, _bare_address(self.sender)))
        accepted.append(configure(TransportOption.MAIL_RCPT, list(self.draft.recipients)))

        if not all(accepted):
            raise TransportSetupError("Transport rejected a send option")
