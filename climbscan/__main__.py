"""Allow ``python -m climbscan``."""

from climbscan.cli import main

main()
