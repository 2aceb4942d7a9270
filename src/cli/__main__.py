"""Allow ``python -m src.cli`` execution."""

import sys

from src.cli.ingest import main

sys.exit(main())
