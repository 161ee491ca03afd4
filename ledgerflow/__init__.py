"""
LedgerFlow - Source Package

Turns scanned invoices and bank statements into reviewed vouchers,
party ledgers and a GST reconciliation view.

DESIGN PRINCIPLES:
1. AI extracts → Human approves → Ledger posts
2. Local state is authoritative, the remote store is a mirror
3. Loading never crashes on bad data
4. Every approval is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "LedgerFlow Team"
