"""Asynchronous phrase-redaction worker."""

__version__ = "0.1.0"
