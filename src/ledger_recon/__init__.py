"""Ledger vs. bank statement reconciliation and account-code validation."""

__version__ = "0.1.0"
