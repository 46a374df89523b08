"""Toolkit for cross-chain bridge services: chain registry, node selection, bridge API client and JSON-RPC pieces."""

__version__ = "0.1.0"