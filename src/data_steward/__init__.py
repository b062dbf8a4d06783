"""Data Steward: a JSON-RPC tool server over streamable HTTP."""

__version__ = "0.1.0"
