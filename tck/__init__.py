"""Conformance harness for ledger client SDKs driven over JSON-RPC."""

__version__ = "0.1.0"
