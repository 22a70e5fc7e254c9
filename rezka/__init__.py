"""Rezka CLI - resolve what to play for movies and series."""

__version__ = "0.3.0"
