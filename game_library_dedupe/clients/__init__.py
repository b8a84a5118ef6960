"""API clients for game metadata sources."""

from .igdb_client import AuthenticationError, IGDBClient, IGDBGame

__all__ = [
    "AuthenticationError",
    "IGDBClient",
    "IGDBGame",
]
