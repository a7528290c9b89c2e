"""Command-line tools for ragdesk.

- ``python -m ragdesk.cli.ingest`` -- index local files, run hybrid
  searches and inspect indexing status against the configured database.
"""
