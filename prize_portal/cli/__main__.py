import sys

from prize_portal.cli import main

sys.exit(main())
