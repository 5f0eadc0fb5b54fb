"""Allow ``python -m thinlauncher``."""
import sys

from thinlauncher.cli import main

sys.exit(main())
