"""
Brokerage Ledger Core

Clients pay contractors for jobs posted under contracts. Balance transfers
are atomic and happen exactly once per job; all money uses Decimal precision.
"""

__version__ = "1.0.0"
