"""Bitcask-style log-structured key/value storage engine with Redis-like data structures."""

__version__ = "0.1.0"