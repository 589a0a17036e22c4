"""Serverless LAN synchronization for file vaults."""

__version__ = "0.1.0"
