"""Parley: route editor text and chat sessions to a hosted LLM."""

__version__ = "0.1.0"
