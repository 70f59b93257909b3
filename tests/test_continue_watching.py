"""
Tests for the continue-watching aggregator
"""

from watchtrack.observability.metrics import MetricsCollector
from watchtrack.services import ContinueWatchingService


def _service(app_state, catalog=None, **kwargs):
    return ContinueWatchingService(app_state, catalog, **kwargs)


class TestListInProgress:
    def test_completion_boundary(self, app_state, clock):
        app_state.upsert_progress("u1", "almost", "movie", 94, 100)
        clock.advance(1)
        app_state.upsert_progress("u1", "done", "movie", 95, 100)

        page, total = _service(app_state).list_in_progress("u1", 10)
        assert [r.content_id for r in page] == ["almost"]
        assert total == 1

    def test_paginates_after_filtering(self, app_state, clock):
        for i in range(6):
            progress = 100 if i % 2 else 10
            app_state.upsert_progress("u1", str(i), "movie", progress, 100)
            clock.advance(1)

        page, total = _service(app_state).list_in_progress("u1", 2, 1)
        assert total == 3
        assert [r.content_id for r in page] == ["2", "0"]

    def test_custom_threshold(self, app_state):
        app_state.upsert_progress("u1", "a", "movie", 80, 100)
        page, _ = _service(app_state, completion_threshold=0.8).list_in_progress("u1", 10)
        assert page == []


class TestEnrichment:
    def test_rows_carry_metadata_in_page_order(self, app_state, catalog, clock):
        catalog.add("movie", "603", "The Matrix", poster_path="/matrix.jpg")
        catalog.add("series", "1399", "Game of Thrones", poster_path="/got.jpg")
        app_state.upsert_progress("u1", "603", "movie", 1000, 8000)
        clock.advance(5)
        app_state.upsert_progress("u1", "1399", "series", 300, 3000)

        rows, total = _service(app_state, catalog).list_continue_watching("u1", 10)

        assert total == 2
        assert [r["title"] for r in rows] == ["Game of Thrones", "The Matrix"]
        assert rows[0]["posterPath"] == "/got.jpg"
        assert rows[0]["progressPercent"] == 10
        assert rows[1]["progressPercent"] == 12
        assert rows[1]["contentId"] == "603"

    def test_failed_lookup_degrades_single_item(self, app_state, catalog, clock):
        catalog.add("movie", "603", "The Matrix")
        catalog.fail_details.add(("movie", "604"))
        app_state.upsert_progress("u1", "603", "movie", 10, 100)
        clock.advance(1)
        app_state.upsert_progress("u1", "604", "movie", 10, 100)

        rows, total = _service(app_state, catalog).list_continue_watching("u1", 10)

        assert total == 2
        assert rows[0]["contentId"] == "604"
        assert rows[0]["title"] is None
        assert rows[0]["posterPath"] is None
        assert rows[1]["title"] == "The Matrix"
        assert MetricsCollector().counter_value(
            "enrichment_failures_total", {"aggregator": "continue_watching"}
        ) == 1

    def test_without_catalog_returns_minimal_rows(self, app_state):
        app_state.upsert_progress("u1", "603", "movie", 10, 100)
        rows, _ = _service(app_state).list_continue_watching("u1", 10)
        assert rows[0]["title"] is None
        assert rows[0]["progressPercent"] == 10

    def test_empty(self, app_state, catalog):
        rows, total = _service(app_state, catalog).list_continue_watching("u1", 10)
        assert rows == []
        assert total == 0
        assert catalog.calls == []

    def test_malformed_catalog_record_still_lists(self, app_state):
        from unittest.mock import MagicMock

        from watchtrack.clients.tmdb_client import TMDBClient

        resp = MagicMock()
        resp.json.return_value = {"id": 603, "title": "The Matrix", "genres": None}
        session = MagicMock()
        session.get.return_value = resp
        client = TMDBClient(api_key="fake-key", base_url="https://tmdb.test/3", session=session)
        app_state.upsert_progress("u1", "603", "movie", 10, 100)

        rows, total = _service(app_state, client).list_continue_watching("u1", 10)

        assert total == 1
        assert rows[0]["title"] == "The Matrix"
        assert rows[0]["progressPercent"] == 10
