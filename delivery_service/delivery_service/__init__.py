"""Delivery service: delivery records and status propagation."""

__version__ = "0.1.0"
