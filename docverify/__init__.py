"""Verify that code snippets in documentation behave as the prose claims."""

__version__ = "0.1.0"
