"""Sync a Spotify account's library onto another account."""

__version__ = "1.0.0"
