"""Bitcask-style log-structured key/value storage engine."""

__version__ = "0.1.0"