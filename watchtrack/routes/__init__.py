"""
Flask Blueprints organised by domain.

Each blueprint reaches the ``TelemetryServer`` instance via
``current_app.config['server']``.
"""

from .discovery_bp import discovery_bp
from .history_bp import history_bp
from .observability_bp import observability_bp
from .progress_bp import progress_bp
from .skip_windows_bp import skip_windows_bp

__all__ = [
    "progress_bp",
    "history_bp",
    "skip_windows_bp",
    "discovery_bp",
    "observability_bp",
]
