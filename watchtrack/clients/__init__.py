"""
External service clients.

- ``tmdb_client`` – catalog provider (titles, posters, genres, trending)
"""

from .tmdb_client import TMDBClient

__all__ = ["TMDBClient"]
