"""Allow running smlr with ``python -m smlr``."""

import sys

from smlr.app import main

sys.exit(main())
