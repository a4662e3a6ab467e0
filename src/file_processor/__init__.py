"""Parallel batch processing of sales, user and log files."""

__version__ = "0.3.0"
