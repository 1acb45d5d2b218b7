"""Allow ``python -m idswatch``."""

from idswatch.cli import main

raise SystemExit(main())
