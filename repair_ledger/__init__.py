"""Warranty Repair Ledger - product warranty tracking with repair history."""

__version__ = "0.1.0"
