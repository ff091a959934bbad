"""HYMusic account sync: local library store, sync engine and remote endpoint."""

__version__ = "1.0.0"
