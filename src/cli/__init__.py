"""Command-line tools for recipeSnap.

- ``python -m src.cli.ingest`` (or ``python -m src.cli``) runs a batch of
  dish photos through the ingestion pipeline and prints a summary.
"""
