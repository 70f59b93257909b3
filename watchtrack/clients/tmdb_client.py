"""TMDB (The Movie Database) catalog client."""

from typing import Any, Dict, List, Optional

import requests

from ..constants import (
    APP_USER_AGENT,
    CATALOG_TIMEOUT_SECONDS,
    CONTENT_TYPE_MOVIE,
    CONTENT_TYPE_SERIES,
    TMDB_BASE_URL,
)
from ..errors import CatalogError
from ..models import CatalogItem
from ..observability.metrics import MetricsCollector
from ..utils import setup_logger

# TMDB path segment for each content type
_TMDB_MEDIA = {CONTENT_TYPE_MOVIE: "movie", CONTENT_TYPE_SERIES: "tv"}
_FROM_TMDB_MEDIA = {"movie": CONTENT_TYPE_MOVIE, "tv": CONTENT_TYPE_SERIES}


class TMDBClient:
    """Read-only access to titles, genres and trending lists on TMDB.

    Every public method raises ``CatalogError`` on transport or payload
    failure; callers decide how much of an aggregation to give up.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        base_url: str = TMDB_BASE_URL,
        timeout: float = CATALOG_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ) -> None:
        """Initialise the TMDB client.

        Args:
            api_key: TMDB API key. If ``None``, every lookup raises
                ``CatalogError`` without touching the network.
            base_url: API root, overridable for proxies and tests.
            timeout: Per-request timeout in seconds.
            session: Optional shared ``requests.Session``.
        """
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.setdefault("User-Agent", APP_USER_AGENT)
        self.logger = setup_logger("tmdb_client", "catalog.log")
        self.metrics = MetricsCollector()

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "TMDBClient":
        section = config.get("catalog", {}) or {}
        return cls(
            api_key=section.get("api_key") or None,
            base_url=section.get("base_url") or TMDB_BASE_URL,
            timeout=float(section.get("timeout_seconds", CATALOG_TIMEOUT_SECONDS)),
        )

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    # ── Public API ───────────────────────────────────────────────

    def get_details(self, content_type: str, content_id: str) -> CatalogItem:
        """Title, poster and genres for one item."""
        media = self._media(content_type)
        data = self._get(f"/{media}/{content_id}")
        item = self._to_item(data, default_type=content_type)
        if item is None:
            raise CatalogError(f"Malformed TMDB details for {media}/{content_id}")
        return item

    def get_trending(self, media_type: str = "all", time_window: str = "week") -> List[CatalogItem]:
        """Trending titles across movies and series (``media_type='all'``)."""
        if media_type != "all":
            media_type = self._media(media_type)
        data = self._get(f"/trending/{media_type}/{time_window}")
        default = _FROM_TMDB_MEDIA.get(media_type)
        return self._to_items(data, default_type=default)

    def discover_by_genre(self, content_type: str, genre_id: int, page: int = 1) -> List[CatalogItem]:
        """Most popular titles of one content type in a genre."""
        media = self._media(content_type)
        data = self._get(
            f"/discover/{media}",
            {"with_genres": str(genre_id), "page": str(page), "sort_by": "popularity.desc"},
        )
        return self._to_items(data, default_type=content_type)

    # ── Internals ────────────────────────────────────────────────

    def _get(self, endpoint: str, params: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        if not self.api_key:
            raise CatalogError("TMDB API key not configured")

        query = {"api_key": self.api_key}
        if params:
            query.update(params)
        url = f"{self.base_url}{endpoint}"
        try:
            response = self.session.get(url, params=query, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as e:
            self.metrics.inc("catalog_requests_total", labels={"result": "error"})
            self.logger.warning("TMDB request %s failed: %s", endpoint, e)
            raise CatalogError(f"TMDB request failed: {e}") from e
        except (ValueError, RecursionError) as e:
            self.metrics.inc("catalog_requests_total", labels={"result": "error"})
            raise CatalogError(f"TMDB returned invalid JSON for {endpoint}") from e

        self.metrics.inc("catalog_requests_total", labels={"result": "ok"})
        if not isinstance(data, dict):
            raise CatalogError(f"Unexpected TMDB payload for {endpoint}")
        return data

    def _to_items(self, data: Dict[str, Any], default_type: Optional[str]) -> List[CatalogItem]:
        items = []
        results = data.get("results")
        if not isinstance(results, list):
            return items
        for raw in results:
            item = self._to_item(raw, default_type=default_type)
            if item is not None:
                items.append(item)
        return items

    @staticmethod
    def _to_item(raw: Any, default_type: Optional[str]) -> Optional[CatalogItem]:
        """Map one TMDB record; ``None`` for people and records without an id."""
        if not isinstance(raw, dict) or raw.get("id") is None:
            return None
        media_type = raw.get("media_type")
        content_type = _FROM_TMDB_MEDIA.get(media_type, default_type) if isinstance(
            media_type, str) else default_type
        if content_type is None:
            # trending/all also returns people
            return None
        title = raw.get("title") or raw.get("name") or ""
        poster_path = raw.get("poster_path")
        rating = raw.get("vote_average")
        return CatalogItem(
            content_id=str(raw["id"]),
            content_type=content_type,
            title=title if isinstance(title, str) else str(title),
            poster_path=poster_path if isinstance(poster_path, str) else None,
            genre_ids=_genre_ids(raw),
            overview=raw.get("overview") if isinstance(raw.get("overview"), str) else "",
            rating=rating if isinstance(rating, (int, float)) and not isinstance(rating, bool)
            else None,
        )

    @staticmethod
    def _media(content_type: str) -> str:
        try:
            return _TMDB_MEDIA[content_type]
        except KeyError:
            raise CatalogError(f"Unsupported content type for catalog: {content_type}") from None


def _genre_ids(raw: Dict[str, Any]) -> List[int]:
    """``genre_ids`` on list endpoints, ``genres[].id`` on details; junk entries dropped."""
    values = raw.get("genre_ids")
    if values is None:
        values = [g.get("id") for g in raw.get("genres") or [] if isinstance(g, dict)]
    if not isinstance(values, list):
        return []
    ids = []
    for value in values:
        if isinstance(value, bool):
            continue
        try:
            ids.append(int(value))
        except (TypeError, ValueError, OverflowError):
            continue
    return ids
