# =============================================================================
# MIME Composer
# =============================================================================
# One-shot assembly of a multipart message, used instead of the streamed
# plain-text payload when a message has attachments or a non-ASCII body.
#
#   - The header block goes to the transport as protocol-level headers
#   - The body becomes the first part, each attachment one more part
#   - Every part is tagged for the base64 transfer encoder; the transform
#     itself belongs to the transport
# =============================================================================

import logging
from pathlib import Path
from typing import Sequence

from cmail.core.headers import HeaderTable
from cmail.errors import MimeInitError, MimePartSetupError, TransportSetupError
from cmail.smtp.transport import MimeDocument, Transport, TransportOption

logger = logging.getLogger(__name__)

MIME_ENCODER = "base64"


class MimeComposer:
    """
    Builds the MIME request for one message on a transport.

    Usage:
        >>> composer = MimeComposer(transport)
        >>> composer.compose(draft.headers, body, draft.attachments)
        >>> await transport.perform()
    """

    def __init__(self, transport: Transport) -> None:
        self._transport = transport

    def compose(
        self,
        headers: HeaderTable,
        body: bytes,
        attachments: Sequence[Path],
    ) -> MimeDocument:
        """
        Hand headers and parts to the transport.

        Args:
            headers: Header values; Bcc and empty headers are left out.
            body: Raw message body; no part is created when empty.
            attachments: Files to attach, in order.

        Returns:
            The document now configured on the transport.

        Raises:
            TransportSetupError: If the header block is rejected.
            MimeInitError: If the multipart container cannot be created.
            MimePartSetupError: If the parts cannot be attached to the request.
        """
        lines = headers.lines()
        for line in lines:
            logger.info(f"Posted header {line}")
        if not self._transport.configure(TransportOption.HEADERS, lines):
            raise TransportSetupError("Transport rejected the MIME header block")

        document = self._transport.mime_init()
        if document is None:
            raise MimeInitError("Failed to initialize the MIME container")

        if body:
            part = document.add_part()
            part.data = body
            part.encoder = MIME_ENCODER

        for path in attachments:
            part = document.add_part()
            part.path = path
            part.encoder = MIME_ENCODER
            logger.info(f"Posted file: '{path}'")

        if not self._transport.configure(TransportOption.MIME_POST, document):
            raise MimePartSetupError("Failed to set up MIME parts")

        return document
