"""
Tests for the HTTP surface: status codes, error codes and payload shapes
"""

import pytest

from conftest import make_items
from watchtrack.observability.metrics import MetricsCollector

DAY = 24 * 60 * 60


def _progress(**overrides):
    body = {
        "userId": "u1",
        "contentId": "603",
        "contentType": "movie",
        "progressSeconds": 1200,
        "totalSeconds": 8160,
    }
    body.update(overrides)
    return body


def _history(**overrides):
    body = {
        "userId": "u1",
        "contentId": "603",
        "contentType": "movie",
        "title": "The Matrix",
        "posterPath": "/matrix.jpg",
        "progressSeconds": 45,
        "totalSeconds": 8160,
    }
    body.update(overrides)
    return body


# ── Watch progress ────────────────────────────────────────────────


class TestProgressRoutes:
    def test_create_then_update(self, flask_client):
        resp = flask_client.post("/watch-progress", json=_progress())
        assert resp.status_code == 201
        created = resp.get_json()
        assert created["progressSeconds"] == 1200

        resp = flask_client.post("/watch-progress", json=_progress(progressSeconds=1300))
        assert resp.status_code == 200
        assert resp.get_json()["id"] == created["id"]
        assert MetricsCollector().counter_value(
            "progress_upserts_total", {"result": "updated", "source": "api"}
        ) == 1

    def test_non_object_body(self, flask_client):
        resp = flask_client.post("/watch-progress", data="not json",
                                 content_type="application/json")
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "INVALID_JSON"

    def test_validation_error_shape(self, flask_client):
        resp = flask_client.post("/watch-progress", json=_progress(progressSeconds=9000))
        assert resp.status_code == 400
        body = resp.get_json()
        assert body["code"] == "PROGRESS_EXCEEDS_TOTAL"
        assert "error" in body

    def test_progress_beyond_integer_range(self, flask_client):
        resp = flask_client.post("/watch-progress", json=_progress(
            progressSeconds=2 ** 63, totalSeconds=2 ** 63,
        ))
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "INVALID_PROGRESS_SECONDS"

    def test_huge_offset_capped(self, flask_client):
        resp = flask_client.get(f"/watch-progress?userId=u1&offset={10 ** 30}")
        assert resp.status_code == 200
        assert resp.get_json()["progress"] == []

    def test_point_lookup(self, flask_client):
        flask_client.post("/watch-progress", json=_progress(contentType="tv", contentId="1399"))
        resp = flask_client.get("/watch-progress?userId=u1&contentId=1399&contentType=series")
        assert resp.status_code == 200
        assert resp.get_json()["contentType"] == "series"

    def test_point_lookup_missing(self, flask_client):
        resp = flask_client.get("/watch-progress?userId=u1&contentId=1&contentType=movie")
        assert resp.status_code == 404
        assert resp.get_json()["code"] == "NOT_FOUND"

    def test_missing_user_id(self, flask_client):
        resp = flask_client.get("/watch-progress")
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "MISSING_USER_ID"

    def test_list_excludes_completed(self, flask_client):
        flask_client.post("/watch-progress", json=_progress(contentId="a"))
        flask_client.post("/watch-progress",
                          json=_progress(contentId="b", progressSeconds=8000))
        resp = flask_client.get("/watch-progress?userId=u1")
        body = resp.get_json()
        assert [r["contentId"] for r in body["progress"]] == ["a"]
        assert body["pagination"] == {"limit": 10, "offset": 0, "total": 1}

    @pytest.mark.parametrize("query,code", [
        ("limit=0", "INVALID_LIMIT"),
        ("limit=abc", "INVALID_LIMIT"),
        ("offset=-1", "INVALID_OFFSET"),
    ])
    def test_bad_pagination(self, flask_client, query, code):
        resp = flask_client.get(f"/watch-progress?userId=u1&{query}")
        assert resp.status_code == 400
        assert resp.get_json()["code"] == code

    def test_limit_capped(self, flask_client):
        resp = flask_client.get("/watch-progress?userId=u1&limit=500")
        assert resp.get_json()["pagination"]["limit"] == 100

    def test_delete(self, flask_client):
        record_id = flask_client.post("/watch-progress", json=_progress()).get_json()["id"]

        resp = flask_client.delete(f"/watch-progress/{record_id}")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["message"] == "Watch progress deleted successfully"
        assert body["deletedRecord"]["id"] == record_id

        resp = flask_client.delete(f"/watch-progress/{record_id}")
        assert resp.status_code == 404
        assert resp.get_json()["code"] == "RECORD_NOT_FOUND"

    @pytest.mark.parametrize("record_id", ["abc", "0", "-3", str(2 ** 63)])
    def test_delete_invalid_id(self, flask_client, record_id):
        resp = flask_client.delete(f"/watch-progress/{record_id}")
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "INVALID_ID"


# ── Watch history ─────────────────────────────────────────────────


class TestHistoryRoutes:
    def test_append_always_creates(self, flask_client):
        first = flask_client.post("/watch-history", json=_history())
        second = flask_client.post("/watch-history", json=_history())
        assert first.status_code == second.status_code == 201
        assert first.get_json()["id"] != second.get_json()["id"]

    def test_watched_at_beyond_integer_range(self, flask_client):
        resp = flask_client.post("/watch-history", json=_history(watchedAt=2 ** 63))
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "INVALID_WATCHED_AT"

    def test_list_defaults_and_filters(self, flask_client, clock):
        flask_client.post("/watch-history", json=_history())
        flask_client.post("/watch-history",
                          json=_history(contentId="1399", contentType="tv", title="GoT"))
        flask_client.post("/watch-history",
                          json=_history(contentId="old", watchedAt=clock.now - 60 * DAY))

        resp = flask_client.get("/watch-history?userId=u1")
        body = resp.get_json()
        assert body["pagination"] == {"limit": 20, "offset": 0, "days": 30, "total": 2}
        assert body["filters"] == {"userId": "u1", "days": 30}

        resp = flask_client.get("/watch-history?userId=u1&contentType=tv&days=90")
        body = resp.get_json()
        assert [e["contentId"] for e in body["history"]] == ["1399"]
        assert body["filters"] == {"userId": "u1", "days": 90, "contentType": "series"}

    @pytest.mark.parametrize("days,expected", [("0", 1), ("-5", 1), ("1000", 365)])
    def test_days_clamped(self, flask_client, days, expected):
        resp = flask_client.get(f"/watch-history?userId=u1&days={days}")
        assert resp.status_code == 200
        assert resp.get_json()["pagination"]["days"] == expected

    def test_days_not_a_number(self, flask_client):
        resp = flask_client.get("/watch-history?userId=u1&days=week")
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "INVALID_DAYS"

    def test_bad_content_type_filter(self, flask_client):
        resp = flask_client.get("/watch-history?userId=u1&contentType=podcast")
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "INVALID_CONTENT_TYPE"

    def test_purge(self, flask_client):
        flask_client.post("/watch-history", json=_history())
        flask_client.post("/watch-history", json=_history())
        resp = flask_client.delete("/watch-history?userId=u1")
        assert resp.get_json() == {"message": "Watch history purged", "deletedCount": 2}


# ── Skip timestamps ───────────────────────────────────────────────


class TestSkipTimestampRoutes:
    def test_create_merge_and_fetch(self, flask_client):
        resp = flask_client.post("/skip-timestamps", json={
            "contentId": "1399", "contentType": "series", "introStart": 5, "introEnd": 90,
        })
        assert resp.status_code == 201

        resp = flask_client.post("/skip-timestamps", json={
            "contentId": "1399", "contentType": "series", "outroStart": 3000, "outroEnd": 3200,
        })
        assert resp.status_code == 200

        body = flask_client.get("/skip-timestamps?contentId=1399&contentType=tv").get_json()
        assert (body["introStart"], body["introEnd"]) == (5, 90)
        assert (body["outroStart"], body["outroEnd"]) == (3000, 3200)

    def test_absent_window(self, flask_client):
        resp = flask_client.get("/skip-timestamps?contentId=1&contentType=movie")
        assert resp.status_code == 404
        assert resp.get_json()["code"] == "TIMESTAMPS_NOT_FOUND"

    def test_missing_lookup_params(self, flask_client):
        resp = flask_client.get("/skip-timestamps?contentId=1")
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "MISSING_REQUIRED_PARAMS"

    def test_missing_create_fields(self, flask_client):
        resp = flask_client.post("/skip-timestamps", json={"contentId": "1"})
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "MISSING_REQUIRED_FIELDS"

    def test_inverted_range(self, flask_client):
        resp = flask_client.post("/skip-timestamps", json={
            "contentId": "1", "contentType": "movie", "introStart": 60, "introEnd": 60,
        })
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "INVALID_INTRO_RANGE"

    def test_bound_beyond_integer_range(self, flask_client):
        resp = flask_client.post("/skip-timestamps", json={
            "contentId": "1", "contentType": "movie", "introStart": 0, "introEnd": 2 ** 63,
        })
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "INVALID_INTRO_END"

    def test_put_conflict(self, flask_client):
        flask_client.post("/skip-timestamps", json={
            "contentId": "1", "contentType": "movie", "introStart": 0, "introEnd": 10,
        })
        other = flask_client.post("/skip-timestamps", json={
            "contentId": "2", "contentType": "movie", "introStart": 0, "introEnd": 10,
        }).get_json()

        resp = flask_client.put(f"/skip-timestamps/{other['id']}", json={"contentId": "1"})
        assert resp.status_code == 409
        assert resp.get_json()["code"] == "DUPLICATE_CONTENT"

    def test_put_and_delete(self, flask_client):
        window = flask_client.post("/skip-timestamps", json={
            "contentId": "1", "contentType": "movie", "introStart": 0, "introEnd": 10,
        }).get_json()

        resp = flask_client.put(f"/skip-timestamps/{window['id']}", json={"introEnd": 30})
        assert resp.status_code == 200
        assert resp.get_json()["introEnd"] == 30

        resp = flask_client.delete(f"/skip-timestamps/{window['id']}")
        assert resp.get_json()["message"] == "Skip timestamps deleted successfully"

        resp = flask_client.put(f"/skip-timestamps/{window['id']}", json={"introEnd": 40})
        assert resp.status_code == 404
        assert resp.get_json()["code"] == "RECORD_NOT_FOUND"


# ── Discovery ─────────────────────────────────────────────────────


class TestDiscoveryRoutes:
    def test_continue_watching(self, flask_client, catalog):
        catalog.add("movie", "603", "The Matrix", poster_path="/matrix.jpg")
        flask_client.post("/watch-progress", json=_progress(progressSeconds=4080))

        body = flask_client.get("/continue-watching?userId=u1").get_json()
        assert body["pagination"]["total"] == 1
        item = body["items"][0]
        assert item["title"] == "The Matrix"
        assert item["progressPercent"] == 50

    def test_recommendations_for_new_user(self, flask_client, catalog):
        catalog.trending = make_items("movie", 1, 3)
        body = flask_client.get("/recommendations?userId=nobody").get_json()
        assert [g["title"] for g in body["groups"]] == ["Trending Now"]
        assert len(body["groups"][0]["items"]) == 3

    def test_recommendations_require_user(self, flask_client):
        resp = flask_client.get("/recommendations")
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "MISSING_USER_ID"


# ── WebSocket ─────────────────────────────────────────────────────


class TestProgressEvents:
    def test_update_reaches_only_that_users_room(self, server, flask_client):
        mine = server.socketio.test_client(server.app, query_string="userId=u1")
        other = server.socketio.test_client(server.app, query_string="userId=u2")
        anonymous = server.socketio.test_client(server.app)

        flask_client.post("/watch-progress", json=_progress())

        received = mine.get_received()
        assert [e["name"] for e in received] == ["progress_update"]
        assert received[0]["args"][0]["userId"] == "u1"
        assert other.get_received() == []
        assert anonymous.get_received() == []


# ── Observability ─────────────────────────────────────────────────


class TestObservabilityRoutes:
    def test_healthz(self, flask_client):
        resp = flask_client.get("/healthz")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["status"] == "healthy"
        assert body["checks"]["database"]["status"] == "ok"
        assert body["checks"]["catalog"]["status"] == "ok"

    def test_metrics_exposition(self, flask_client):
        flask_client.post("/watch-progress", json=_progress())
        resp = flask_client.get("/metrics")
        assert resp.status_code == 200
        assert resp.mimetype == "text/plain"
        assert "progress_upserts_total" in resp.get_data(as_text=True)

    def test_request_id_echoed(self, flask_client):
        resp = flask_client.get("/healthz", headers={"X-Request-ID": "req-123"})
        assert resp.headers["X-Request-ID"] == "req-123"

    def test_request_id_generated(self, flask_client):
        resp = flask_client.get("/healthz")
        assert len(resp.headers["X-Request-ID"]) == 32

    def test_unknown_route_is_json(self, flask_client):
        resp = flask_client.get("/no-such-thing")
        assert resp.status_code == 404
        assert resp.get_json()["code"] == "NOT_FOUND"

    def test_unexpected_error_is_captured(self, flask_client, server, monkeypatch):
        def boom(*args, **kwargs):
            raise RuntimeError("disk on fire")

        monkeypatch.setattr(server.app_state, "purge_history", boom)
        resp = flask_client.delete("/watch-history?userId=u1")
        assert resp.status_code == 500
        assert resp.get_json()["code"] == "INTERNAL_ERROR"

        recent = flask_client.get("/errors/recent").get_json()
        assert recent[0]["error_type"] == "RuntimeError"
        assert recent[0]["message"] == "disk on fire"
