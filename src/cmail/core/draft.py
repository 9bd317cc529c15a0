# =============================================================================
# Email Draft
# =============================================================================
# The composition state of one outgoing message: headers, envelope
# recipients and attachment paths.
#
# A draft is owned by the SMTP session and reset (not replaced) after every
# completed send, so one session can send several messages in a row.
# =============================================================================

import logging
from dataclasses import dataclass, field
from pathlib import Path

from cmail.core.headers import ADDITIVE_HEADERS, HeaderKind, HeaderTable, RecipientList

logger = logging.getLogger(__name__)


@dataclass
class EmailDraft:
    """
    Represents an email being composed.

    Attributes:
        headers: Header values to serialize.
        recipients: Envelope recipients, fed by To, Cc and Bcc.
        attachments: Paths of files to attach, in order.

    Example:
        >>> draft = EmailDraft()
        >>> draft.add_header(HeaderKind.TO, "bob@example.com")
        >>> draft.add_header(HeaderKind.BCC, "audit@example.com")
        >>> list(draft.recipients)
        ['bob@example.com', 'audit@example.com']
    """
    headers: HeaderTable = field(default_factory=HeaderTable)
    recipients: RecipientList = field(default_factory=RecipientList)
    attachments: list[Path] = field(default_factory=list)

    def add_header(self, kind: HeaderKind, value: str) -> None:
        """
        Set a header; To/Cc/Bcc also add the raw value to the recipients.

        Raises:
            RecipientAppendError: If the recipient cannot be added. The header
                                  is left unchanged in that case.
        """
        if kind is HeaderKind.NONE:
            return
        logger.info(f"Adding header '{kind.value}'...")

        if kind in ADDITIVE_HEADERS:
            self.recipients.append(value)
        self.headers.add(kind, value)

        logger.info(f"'{kind.value}': '{self.headers.get(kind)}'")

    def attach_file(self, path: str | Path) -> None:
        self.attachments.append(Path(path))

    def reset(self) -> None:
        """Clear headers, recipients and attachments for the next message."""
        self.headers.clear()
        self.recipients.clear()
        self.attachments.clear()
