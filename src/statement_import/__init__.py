"""
Statement import and duplicate detection for Firefly III.

Turns raw statement entries into vetted ledger transactions:
normalize, optionally group, search for duplicates, then preview or commit.
"""

__version__ = "0.1.0"
