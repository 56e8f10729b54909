"""Allow ``python -m trc``."""

import sys

from trc.cli import main

if __name__ == "__main__":
    sys.exit(main())
