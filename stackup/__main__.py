import sys

from stackup.cli import main

sys.exit(main())
