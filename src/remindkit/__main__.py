"""Allow ``python -m remindkit``."""

from remindkit.cli.main import main

main()
