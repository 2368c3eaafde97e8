"""Persistent data model for an e-learning platform."""

__version__ = "0.1.0"
