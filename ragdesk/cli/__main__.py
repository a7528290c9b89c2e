"""Allow ``python -m ragdesk.cli`` execution."""

from ragdesk.cli.ingest import main

main()
