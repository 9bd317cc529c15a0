# =============================================================================
# cmail Entry Point for `python -m cmail`
# =============================================================================
# This module allows cmail to be run as a Python module:
#
#   echo "Hello" | python -m cmail bob@example.com
#
# This is equivalent to running the 'cmail' command after installation.
# =============================================================================

import sys

from cmail.app import main

if __name__ == "__main__":
    sys.exit(main())
