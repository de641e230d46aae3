"""Allow ``python -m crossship``."""

import sys

from crossship.cli import main

sys.exit(main())
