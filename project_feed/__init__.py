"""Unified project activity feed: chat, status timeline and progress track."""

__version__ = "0.1.0"
