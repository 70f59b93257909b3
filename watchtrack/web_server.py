"""
HTTP + WebSocket server for playback telemetry.
Progress, history and skip-window endpoints, continue watching,
recommendations, health and metrics.
"""

import os
import sys
from pathlib import Path
from typing import Any, Dict

from flask import Flask, request
from flask_socketio import SocketIO, join_room

from .app_state import AppState
from .clients.tmdb_client import TMDBClient
from .config import TelemetrySettings, load_config, validate_config
from .constants import APP_VERSION, DEFAULT_CONFIG_PATH
from .observability.errors import ErrorTracker
from .observability.logging import setup_structured_logger
from .observability.metrics import MetricsCollector
from .observability.tracing import RequestTracer
from .routes import (
    discovery_bp,
    history_bp,
    observability_bp,
    progress_bp,
    skip_windows_bp,
)
from .services import ContinueWatchingService, RecommendationService
from .utils import setup_logger, user_room


class TelemetryServer:
    """Flask application wiring the store, the catalog client and the aggregators"""

    def __init__(
        self,
        config: Dict[str, Any] = None,
        *,
        config_path: str = None,
        app_state: AppState = None,
        catalog: TMDBClient = None,
    ):
        """Initialise the Flask server.

        Args:
            config: Pre-loaded configuration dict (preferred).
            config_path: Path to the JSON config file.
            app_state: Optional pre-existing AppState instance.
                Created from ``database.path`` if not provided.
            catalog: Optional catalog client. Built from the ``catalog``
                config section if not provided.
        """
        self.config = config if config is not None else load_config(
            config_path or DEFAULT_CONFIG_PATH
        )
        debug_mode = self.config.get("logging", {}).get("debug", False)
        self.logger = setup_logger("web_server", "web_server.log", debug=debug_mode)
        self.settings = TelemetrySettings.from_config(self.config)

        if app_state is None:
            app_state = AppState(self._db_path(), settings=self.settings)
        self.app_state = app_state
        self.catalog = catalog or TMDBClient.from_config(self.config)
        if not self.catalog.enabled:
            self.logger.warning("No catalog API key configured; enrichment disabled")

        self.continue_watching = ContinueWatchingService(
            self.app_state,
            self.catalog,
            completion_threshold=self.settings.completion_threshold,
        )
        self.recommendations = RecommendationService.from_config(
            self.config, self.app_state, self.catalog
        )

        self.app = Flask(__name__)
        self.app.secret_key = os.environ.get("FLASK_SECRET_KEY", os.urandom(32).hex())

        cors_origins = os.environ.get("CORS_ALLOWED_ORIGINS", "").strip()
        if cors_origins:
            allowed_origins = [o.strip() for o in cors_origins.split(",")]
        else:
            allowed_origins = "*"  # local dev default, override in production
        self.socketio = SocketIO(
            self.app, cors_allowed_origins=allowed_origins, async_mode="threading"
        )
        self.app_state.set_socketio(self.socketio)

        self.metrics = MetricsCollector()
        self.tracer = RequestTracer(
            self.app,
            logger=setup_structured_logger("http", "requests.log", debug=debug_mode),
            metrics=self.metrics,
        )
        ErrorTracker().install_flask(self.app)

        self._register_blueprints()
        self._setup_socketio()

        self.logger.info("TelemetryServer %s initialized", APP_VERSION)

    def _db_path(self) -> str:
        path = Path(self.config["database"]["path"])
        if not path.is_absolute():
            path = Path(__file__).parent.parent / path
        return str(path)

    def _register_blueprints(self):
        """Register domain Blueprints and expose server on app."""
        self.app.config["server"] = self
        for bp in (
            progress_bp,
            history_bp,
            skip_windows_bp,
            discovery_bp,
            observability_bp,
        ):
            self.app.register_blueprint(bp)

    # ── WebSocket ────────────────────────────────────────────────

    def _setup_socketio(self):
        """Setup WebSocket event handlers"""

        @self.socketio.on("connect")
        def handle_connect(auth=None):
            user_id = request.args.get("userId", "").strip()
            if user_id:
                join_room(user_room(user_id))
            self.logger.debug("WebSocket client connected: %s (user=%s)",
                              request.sid, user_id or "-")

        @self.socketio.on("disconnect")
        def handle_disconnect(reason=None):
            self.logger.debug("WebSocket client disconnected")

    # ── Server Start ─────────────────────────────────────────────

    def run(self, host: str = None, port: int = None):
        """Start the web server with WebSocket support"""
        host = host or self.config["web_server"]["host"]
        port = port or self.config["web_server"]["port"]

        self.logger.info("Starting telemetry server on %s:%s", host, port)
        self.socketio.run(
            self.app, host=host, port=int(port), debug=False, allow_unsafe_werkzeug=True
        )


def main():
    """Console entry point (``watchtrack-server``)"""
    import argparse

    parser = argparse.ArgumentParser(description="Start the playback telemetry server")
    parser.add_argument("--host", help="Host address")
    parser.add_argument("--port", type=int, help="Port number")
    parser.add_argument("--config", default=DEFAULT_CONFIG_PATH, help="Path to config file")
    args = parser.parse_args()

    config = load_config(args.config)
    config_errors = validate_config(config)
    if config_errors:
        for err in config_errors:
            print(f"  Config error: {err}", file=sys.stderr)
        sys.exit(1)

    server = TelemetryServer(config)
    server.run(host=args.host, port=args.port)


if __name__ == "__main__":
    main()
