"""API gateway: routing and idempotent request replay."""

__version__ = "0.1.0"
