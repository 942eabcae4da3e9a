"""Allow ``python -m docindex.cli`` execution."""

from docindex.cli.ingest import main

main()
