"""LedgerShare: time and view limited file sharing with ledger-anchored integrity."""

__version__ = "0.1.0"
