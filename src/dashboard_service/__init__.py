"""AUES committee dashboard service."""

__version__ = "1.0.0"
