# =============================================================================
# cmail Core Module
# =============================================================================
# Core composition models. These are plain Python classes with no external
# dependencies, importable anywhere without circular imports.
#
#   - HeaderKind / HeaderTable: the supported headers and their set rules
#   - RecipientList: envelope recipients collected from To/Cc/Bcc
#   - EmailDraft: everything one outgoing message is made of
# =============================================================================

from cmail.core.draft import EmailDraft
from cmail.core.headers import (
    ADDITIVE_HEADERS,
    HEADER_ORDER,
    HeaderKind,
    HeaderTable,
    RecipientList,
)

__all__ = [
    "ADDITIVE_HEADERS",
    "HEADER_ORDER",
    "EmailDraft",
    "HeaderKind",
    "HeaderTable",
    "RecipientList",
]
