"""Sales service: order saga orchestrator."""

__version__ = "0.1.0"
