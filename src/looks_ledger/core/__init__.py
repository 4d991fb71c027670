"""Core configuration for the Looks Ledger service."""
