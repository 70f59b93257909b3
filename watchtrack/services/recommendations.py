"""
Genre-based recommendations built from the watch history log.

Ranking is a pure function over the watched titles (``rank_genres``);
everything that talks to the catalog lives in ``RecommendationService``
so the ranking can be tested without the network.

Groups, in order:

1. "Because you watched <title>": popular titles in the primary genre of
   the most recent watch, minus that title itself.
2. "More like what you watch": one group per top genre, movies then
   series, minus anything already watched.
3. "Popular on <platform>": trending, minus anything already watched.

An empty history yields a single "Trending Now" group.  A failing catalog
call only costs the group it was for.
"""

from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Set, Tuple

from ..constants import (
    CONTENT_TYPE_MOVIE,
    CONTENT_TYPE_SERIES,
    DEFAULT_PLATFORM_NAME,
    ENRICHMENT_MAX_WORKERS,
    GENRE_GROUP_TITLE,
    RECOMMENDATION_GROUP_SIZE,
    RECOMMENDATION_HISTORY_DAYS,
    RECOMMENDATION_HISTORY_SAMPLE,
    RECOMMENDATION_TOP_GENRES,
    TRENDING_GROUP_TITLE,
)
from ..errors import CatalogError
from ..models import CatalogItem, HistoryEntry, RecommendationGroup
from ..observability.metrics import MetricsCollector
from ..utils import setup_logger


@dataclass
class WatchedTitle:
    """A distinct title from the history log, with its catalog genres."""

    content_id: str
    content_type: str
    title: str
    genre_ids: List[int] = field(default_factory=list)

    @property
    def key(self) -> Tuple[str, str]:
        return (self.content_type, self.content_id)


def rank_genres(watched: Iterable[WatchedTitle], top_n: int = RECOMMENDATION_TOP_GENRES) -> List[int]:
    """Genre ids ordered by how many watched titles carry them.

    Ties keep first-seen order, so with a newest-first history the more
    recently watched genre wins.
    """
    counts: Counter = Counter()
    for item in watched:
        counts.update(item.genre_ids)
    return [genre_id for genre_id, _ in counts.most_common(top_n)]


def distinct_titles(entries: Sequence[HistoryEntry]) -> List[WatchedTitle]:
    """Collapse a newest-first history to one ``WatchedTitle`` per content key."""
    seen: Set[Tuple[str, str]] = set()
    titles = []
    for entry in entries:
        key = (entry.content_type, entry.content_id)
        if key in seen:
            continue
        seen.add(key)
        titles.append(WatchedTitle(entry.content_id, entry.content_type, entry.title))
    return titles


def _exclude(items: Iterable[CatalogItem], keys: Set[Tuple[str, str]],
             size: int = RECOMMENDATION_GROUP_SIZE) -> List[CatalogItem]:
    out = []
    emitted: Set[Tuple[str, str]] = set()
    for item in items:
        if item.key in keys or item.key in emitted:
            continue
        emitted.add(item.key)
        out.append(item)
        if len(out) >= size:
            break
    return out


class RecommendationService:
    """Builds recommendation groups for a user from history and the catalog."""

    def __init__(
        self,
        app_state: "AppState",  # noqa: F821
        catalog: "TMDBClient",  # noqa: F821
        *,
        platform_name: str = DEFAULT_PLATFORM_NAME,
        history_days: int = RECOMMENDATION_HISTORY_DAYS,
        history_sample: int = RECOMMENDATION_HISTORY_SAMPLE,
        max_workers: int = ENRICHMENT_MAX_WORKERS,
    ):
        self.app_state = app_state
        self.catalog = catalog
        self.platform_name = platform_name
        self.history_days = history_days
        self.history_sample = history_sample
        self.max_workers = max_workers
        self.logger = setup_logger("recommendations", "aggregators.log")
        self.metrics = MetricsCollector()

    @classmethod
    def from_config(cls, config, app_state, catalog) -> "RecommendationService":
        section = config.get("recommendations", {}) or {}
        return cls(
            app_state,
            catalog,
            platform_name=section.get("platform_name") or DEFAULT_PLATFORM_NAME,
            history_days=int(section.get("history_window_days", RECOMMENDATION_HISTORY_DAYS)),
            history_sample=int(section.get("history_sample_size", RECOMMENDATION_HISTORY_SAMPLE)),
        )

    # ── Public API ───────────────────────────────────────────────

    def recommend(
        self, user_id: str, history: Optional[List[WatchedTitle]] = None
    ) -> List[RecommendationGroup]:
        """Recommendation groups for ``user_id``.

        Args:
            user_id: Whose history to read.
            history: Pre-built newest-first watched titles (genres already
                filled in). When ``None`` the history log is read and the
                genres are looked up in the catalog.
        """
        if history is None:
            history = self.load_history(user_id)

        if not history:
            trending = self._fetch("trending", self.catalog.get_trending, "all", "week")
            groups = [RecommendationGroup(TRENDING_GROUP_TITLE, trending[:RECOMMENDATION_GROUP_SIZE])]
            self.metrics.inc("recommendation_groups_total", len(groups))
            return groups

        watched_keys = {item.key for item in history}
        groups: List[RecommendationGroup] = []

        last = history[0]
        if last.genre_ids:
            similar = self._fetch(
                "because_you_watched",
                self.catalog.discover_by_genre, last.content_type, last.genre_ids[0],
            )
            items = _exclude(similar, {last.key})
            if items:
                groups.append(RecommendationGroup(f"Because you watched {last.title}", items))

        for genre_id in rank_genres(history):
            movies = self._fetch("genre", self.catalog.discover_by_genre, CONTENT_TYPE_MOVIE, genre_id)
            series = self._fetch("genre", self.catalog.discover_by_genre, CONTENT_TYPE_SERIES, genre_id)
            items = _exclude(movies + series, watched_keys)
            if items:
                groups.append(RecommendationGroup(GENRE_GROUP_TITLE, items))

        trending = _exclude(self._fetch("trending", self.catalog.get_trending, "all", "week"),
                            watched_keys)
        if trending:
            groups.append(RecommendationGroup(f"Popular on {self.platform_name}", trending))

        self.metrics.inc("recommendation_groups_total", len(groups))
        return groups

    def load_history(self, user_id: str) -> List[WatchedTitle]:
        """Recent distinct titles of ``user_id`` with catalog genres, newest first."""
        entries, _ = self.app_state.list_history(
            user_id, self.history_days, limit=self.history_sample
        )
        titles = distinct_titles(entries)
        if not titles:
            return titles

        workers = max(1, min(self.max_workers, len(titles)))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            list(pool.map(self._fill_genres, titles))
        return titles

    # ── Internals ────────────────────────────────────────────────

    def _fill_genres(self, title: WatchedTitle) -> None:
        try:
            item = self.catalog.get_details(title.content_type, title.content_id)
        except CatalogError as e:
            self.logger.warning(
                "Genre lookup failed for %s:%s: %s", title.content_type, title.content_id, e
            )
            return
        title.genre_ids = list(item.genre_ids)

    def _fetch(self, group: str, call, *args) -> List[CatalogItem]:
        try:
            return call(*args)
        except CatalogError as e:
            self.metrics.inc("enrichment_failures_total", labels={"aggregator": "recommendations"})
            self.logger.warning("Catalog query for %s group failed: %s", group, e)
            return []
