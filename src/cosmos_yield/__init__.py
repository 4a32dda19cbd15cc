"""Aggregated ATOM yield and staking feed across Cosmos networks."""

__version__ = "0.1.0"
