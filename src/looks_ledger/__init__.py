# src/looks_ledger/__init__.py
"""Looks Ledger: credit balance, rate limit and entitlement service."""

__version__ = "0.1.0"
