"""Inventory service: stock ledger and stock-check responder."""

__version__ = "0.1.0"
