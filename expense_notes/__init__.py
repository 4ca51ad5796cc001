"""
Expense Notes - Source Package

Keeps a personal expense ledger as markdown tables embedded in notes
and regenerates recurring entries on a schedule.

DESIGN PRINCIPLES:
1. One canonical table per document, rewritten only through the table store
2. Malformed input degrades to safe defaults, never aborts a batch
3. Schedule state is committed only after its records are written
4. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Expense Notes Team"
