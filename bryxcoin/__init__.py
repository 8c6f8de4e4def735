"""
Bryxcoin Ledger

A small-value transfer ledger whose source of truth is an append-only log of
transaction files kept in a git repository and synchronized with a remote
before and after every mutation.
"""

__version__ = "1.0.0"
