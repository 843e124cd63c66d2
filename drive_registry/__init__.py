"""Resumable registry of a Google Drive folder tree."""

__version__ = "0.1.0"
