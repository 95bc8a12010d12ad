"""Droog: structural extraction, code indexing and duplicate detection for code review."""

__version__ = "0.3.0"
