"""Curriculum document processing and review analysis service."""

__version__ = "0.1.0"
