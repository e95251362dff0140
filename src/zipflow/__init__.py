"""Streaming ZIP archive decoding."""

__version__ = "0.1.0"
