"""Command line interface (``python -m asset_import.cli``)."""

from .__main__ import main

__all__ = ["main"]
