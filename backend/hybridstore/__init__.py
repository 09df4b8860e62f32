"""Hybrid Store: registry metadata + sharded payload persistence with optimistic reconciliation."""

__version__ = "0.1.0"
