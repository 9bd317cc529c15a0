# =============================================================================
# SMTP Module
# =============================================================================
# Handles sending emails via SMTP (Simple Mail Transfer Protocol).
#
# Features:
#   - Mail session with additive/overridable headers (SMTPClient)
#   - Plain-text payload streamed on demand (PayloadStream)
#   - MIME multipart with base64 parts for attachments/non-ASCII bodies
#   - aiosmtplib transport with implicit TLS or STARTTLS
# =============================================================================

from cmail.errors import (
    HostUnsetError,
    MimeInitError,
    MimePartSetupError,
    RecipientAppendError,
    RecipientsUnsetError,
    SMTPError,
    TransportSetupError,
)
from cmail.smtp.client import SMTPClient
from cmail.smtp.mime import MIME_ENCODER, MimeComposer
from cmail.smtp.stream import PayloadStream, StreamPhase
from cmail.smtp.transport import (
    MimeDocument,
    MimePart,
    SMTPTransport,
    TransferCode,
    TransferResult,
    Transport,
    TransportOption,
)

__all__ = [
    "SMTPClient",
    "PayloadStream",
    "StreamPhase",
    "MimeComposer",
    "MIME_ENCODER",
    "MimeDocument",
    "MimePart",
    "SMTPTransport",
    "Transport",
    "TransportOption",
    "TransferCode",
    "TransferResult",
    "SMTPError",
    "RecipientAppendError",
    "HostUnsetError",
    "RecipientsUnsetError",
    "TransportSetupError",
    "MimeInitError",
    "MimePartSetupError",
]
