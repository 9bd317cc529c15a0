# =============================================================================
# Session Errors
# =============================================================================
# Errors raised while preparing or starting a send. They are flat: every kind
# derives directly from SMTPError and is terminal for the current send().
#
# Delivery outcomes (server refused, connection lost, ...) are NOT raised;
# they are reported as a TransferResult by the transport.
#
# Each kind carries a stable numeric code, used by the CLI for exit codes.
# =============================================================================


class SMTPError(Exception):
    """Base exception for mail session errors."""
    code = -1


class RecipientAppendError(SMTPError):
    """Raised when the recipient list cannot accept another address."""
    code = 0


class HostUnsetError(SMTPError):
    """Raised when sending without an SMTP host."""
    code = 1


class RecipientsUnsetError(SMTPError):
    """Raised when sending without any To/Cc/Bcc recipient."""
    code = 2


class TransportSetupError(SMTPError):
    """Raised when the transport rejects a send option."""
    code = 3


class MimeInitError(SMTPError):
    """Raised when the multipart container cannot be created."""
    code = 4


class MimePartSetupError(SMTPError):
    """Raised when the assembled MIME parts cannot be attached to the request."""
    code = 5
