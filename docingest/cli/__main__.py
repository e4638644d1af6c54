"""Allow ``python -m docingest.cli`` execution."""

from docingest.cli.ingest import main

main()
