# =============================================================================
# cmail: Send Email from the Command Line
# =============================================================================
#
#   echo "Report attached" | cmail -a report.pdf bob@example.com
#
# cmail composes one message from command-line options and stdin and
# delivers it over SMTP, in plain text or as MIME with base64 parts.
#
# Features:
#   - Additive To/Cc/Bcc and overridable From/Subject headers
#   - Streamed plain-text payloads, MIME for attachments and unicode
#   - SMTPS login with passwords from the option or the system keyring
#   - Recovery of the SMTP server and sender from the username
#   - A small calendar engine for the "Date" header (cmail.chrono)
#   - XDG Base Directory compliant configuration
#
# =============================================================================

__version__ = "1.2.0"
__app_name__ = "cmail"

# Main entry point - this is what gets called by the 'cmail' command
from cmail.app import main

__all__ = ["main", "__version__", "__app_name__"]
