import sys

from lintcs.cli import main

sys.exit(main())
