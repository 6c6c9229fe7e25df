"""Wire messages, allowed-IP routing, index tables, logging, endpoints and UDP offload helpers for a WireGuard-style tunnel."""

__version__ = "0.1.0"