"""Allow `python -m aissh`."""

import sys

from aissh.cli import main

sys.exit(main())
