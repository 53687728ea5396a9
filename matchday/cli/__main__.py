import sys

from matchday.cli import main

sys.exit(main())
