"""Authentication for the source and target accounts."""

from .oauth_handler import SpotifyOAuthHandler
from .spotify_auth import REQUIRED_SCOPES, SpotifyAuth

__all__ = ["REQUIRED_SCOPES", "SpotifyAuth", "SpotifyOAuthHandler"]
