"""Command line interface (``python -m csv_importer.cli``)."""

from .app import main

__all__ = ["main"]
