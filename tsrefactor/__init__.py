"""Duplicate detection and migration planning for TypeScript code bases."""

__version__ = "0.1.0"
