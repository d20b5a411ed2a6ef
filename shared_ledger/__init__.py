"""
Shared Ledger - Source Package

Shared-expense ledger and debt-settlement engine for a personal
finance assistant. Users pool expenses in groups, record who paid,
split the cost, and settle what they owe each other.

DESIGN PRINCIPLES:
1. Money is Decimal, never float
2. Status is the single source of truth for an obligation
3. Settlement is one batch write, never a loop of writes
4. Every write is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Shared Ledger Team"
