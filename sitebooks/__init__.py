"""
Site Books - Source Package

Financial record-keeping core for a construction business: site-wise and
account-wise summaries of income and expense, and a fund-transfer ledger
that keeps bank-account balances consistent.

DESIGN PRINCIPLES:
1. Money is Decimal, never float
2. Fail early, fail visibly
3. No partial summaries, no half-applied transfers
4. Every mutation is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Site Books Team"
