"""Replacement songs for level song IDs: storage, indexes, downloads and events."""

__version__ = "3.1.0"