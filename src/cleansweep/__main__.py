"""Entry point for `python -m cleansweep`."""

import sys

from cleansweep.cli.__main__ import main

sys.exit(main())
