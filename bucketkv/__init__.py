"""Bucketed key/value storage on top of a relational table."""

__version__ = "0.1.0"
