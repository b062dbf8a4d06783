import sys

from data_steward.cli import main

sys.exit(main())  # type: ignore[call-arg]
