"""
Continue-watching aggregation.

Reads every progress record of a user, drops the ones past the completion
threshold, paginates the rest, then joins each surviving record with
catalog metadata.  Catalog lookups fan out on a small thread pool and
fail independently: a record whose lookup fails is still returned, with
empty display fields.
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional, Tuple

from ..constants import COMPLETION_THRESHOLD, ENRICHMENT_MAX_WORKERS
from ..errors import CatalogError
from ..models import ProgressRecord
from ..observability.metrics import MetricsCollector
from ..utils import setup_logger


class ContinueWatchingService:
    """Builds the "continue watching" row for a user."""

    def __init__(
        self,
        app_state: "AppState",  # noqa: F821
        catalog: Optional["TMDBClient"] = None,  # noqa: F821
        *,
        completion_threshold: float = COMPLETION_THRESHOLD,
        max_workers: int = ENRICHMENT_MAX_WORKERS,
    ):
        """
        Args:
            app_state: Store providing ``list_progress``.
            catalog: Client providing ``get_details``. Without one, every
                item comes back as a minimal row.
            completion_threshold: Fraction at which a title counts as
                finished and is left out.
            max_workers: Upper bound on concurrent catalog lookups.
        """
        self.app_state = app_state
        self.catalog = catalog
        self.completion_threshold = completion_threshold
        self.max_workers = max_workers
        self.logger = setup_logger("continue_watching", "aggregators.log")
        self.metrics = MetricsCollector()

    def list_in_progress(
        self, user_id: str, limit: int, offset: int = 0
    ) -> Tuple[List[ProgressRecord], int]:
        """Unfinished records, most recently watched first.

        Returns:
            ``(page, total)`` where ``total`` counts the filtered set
            before pagination.
        """
        records = self.app_state.list_progress(user_id)
        in_progress = [r for r in records if not r.is_completed(self.completion_threshold)]
        return in_progress[offset:offset + limit], len(in_progress)

    def list_continue_watching(
        self, user_id: str, limit: int, offset: int = 0
    ) -> Tuple[List[Dict[str, Any]], int]:
        """Like ``list_in_progress`` but each row carries title, poster and percent."""
        page, total = self.list_in_progress(user_id, limit, offset)
        if not page:
            return [], total

        workers = max(1, min(self.max_workers, len(page)))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            # map() keeps the page order
            rows = list(pool.map(self._enrich, page))
        return rows, total

    def _enrich(self, record: ProgressRecord) -> Dict[str, Any]:
        row = record.to_dict()
        row["progressPercent"] = round(record.completion * 100)
        row["title"] = None
        row["posterPath"] = None

        if self.catalog is None:
            return row
        try:
            item = self.catalog.get_details(record.content_type, record.content_id)
        except CatalogError as e:
            self.metrics.inc("enrichment_failures_total", labels={"aggregator": "continue_watching"})
            self.logger.warning(
                "Enrichment failed for %s:%s: %s", record.content_type, record.content_id, e
            )
            return row

        row["title"] = item.title or None
        row["posterPath"] = item.poster_path
        return row
