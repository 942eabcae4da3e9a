"""Command-line tools for docindex.

- ``python -m docindex.cli.ingest`` uploads, lists, searches, deletes and
  summarises documents without running the web server.
"""
