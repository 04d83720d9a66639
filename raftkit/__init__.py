"""Raft node front API, configuration options, membership checks and logging."""

__version__ = "0.1.0"