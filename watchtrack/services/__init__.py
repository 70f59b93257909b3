"""
Aggregators built on top of the telemetry store.

- ``continue_watching`` – in-progress titles joined with catalog metadata
- ``recommendations`` – genre ranking over the history log plus catalog queries
"""

from .continue_watching import ContinueWatchingService
from .recommendations import RecommendationService, WatchedTitle, rank_genres

__all__ = [
    "ContinueWatchingService",
    "RecommendationService",
    "WatchedTitle",
    "rank_genres",
]
