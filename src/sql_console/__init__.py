"""SQL Console - multi-statement SQL execution service."""

__version__ = "0.1.0"
