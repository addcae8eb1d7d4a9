"""Bulk asset import reconciliation engine.

Spreadsheet rows -> validation -> reference resolution -> create/update plan,
executed in two phases (analyze, then commit).
"""

__version__ = "0.1.0"
