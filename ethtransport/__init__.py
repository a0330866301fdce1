"""Async JSON-RPC transports for Ethereum nodes: HTTP, IPC, WebSocket, batching and testing."""

__version__ = "0.1.0"