"""Finch: a local-first, tool-using conversational assistant service."""

__version__ = "0.1.0"
