"""
Cash Position Reconciliation Engine

Turns a ledger of receivable/payable entries into realized and projected
bank balances, per account and in aggregate, and cross-validates the
figures through an independent per-account computation.
"""

__version__ = "1.0.0"
