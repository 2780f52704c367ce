"""
Expense Ledger - Source Package

Budget-ledger core for a small-business expense tracker: users log
expenses against suppliers, keep a running budget, mark items paid and
review spending through derived reports.

DESIGN PRINCIPLES:
1. The budget is one aggregate root, owned by the ledger engine
2. In-memory state never runs ahead of durable state
3. Reports are pure functions of the expense collection
4. Every ledger mutation is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Expense Ledger Team"
