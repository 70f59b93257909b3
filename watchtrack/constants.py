"""
Centralised constants for the watch telemetry service.

All thresholds, limits and default values live here so they can be
imported by any module without circular dependencies.
"""

# ── Version ──────────────────────────────────────────────────────
APP_VERSION = "0.1.0"
APP_USER_AGENT = f"WatchTrack/{APP_VERSION}"

# ── Default paths ────────────────────────────────────────────────
DEFAULT_CONFIG_PATH = "config.json"
DEFAULT_DB_PATH = "data/watchtrack.db"

# ── Content types ────────────────────────────────────────────────
CONTENT_TYPE_MOVIE = "movie"
CONTENT_TYPE_SERIES = "series"
CONTENT_TYPES = frozenset({CONTENT_TYPE_MOVIE, CONTENT_TYPE_SERIES})
# Older clients and the catalog provider call series "tv"
CONTENT_TYPE_ALIASES = {"tv": CONTENT_TYPE_SERIES}

# ── Playback telemetry ───────────────────────────────────────────
COMPLETION_THRESHOLD = 0.95  # fraction at which a title counts as finished
COMMIT_INTERVAL_SECONDS = 10
HISTORY_MIN_SECONDS = 30  # absolute position before a history snapshot is taken
HISTORY_FALLBACK_DELAY_SECONDS = 32
FALLBACK_DURATION_SECONDS = 7200  # duration guess when the player never reported one
DEFAULT_TRUSTED_PLAYER_HOSTS = ("videasy.net", "vidluna.fun", "vidora.su")

PROGRESS_POLICY_LAST_WRITER_WINS = "last_writer_wins"
PROGRESS_POLICY_ONLY_ADVANCE = "only_advance"

# ── Pagination ───────────────────────────────────────────────────
PROGRESS_DEFAULT_LIMIT = 10
PROGRESS_MAX_LIMIT = 100
HISTORY_DEFAULT_LIMIT = 20
HISTORY_MAX_LIMIT = 100
HISTORY_DEFAULT_DAYS = 30
HISTORY_MIN_DAYS = 1
HISTORY_MAX_DAYS = 365

# ── Recommendations ──────────────────────────────────────────────
RECOMMENDATION_GROUP_SIZE = 10
RECOMMENDATION_TOP_GENRES = 2
RECOMMENDATION_HISTORY_DAYS = 365
RECOMMENDATION_HISTORY_SAMPLE = 50
DEFAULT_PLATFORM_NAME = "WatchTrack"
TRENDING_GROUP_TITLE = "Trending Now"
GENRE_GROUP_TITLE = "More like what you watch"

# ── Catalog provider ─────────────────────────────────────────────
TMDB_BASE_URL = "https://api.themoviedb.org/3"
CATALOG_TIMEOUT_SECONDS = 10
ENRICHMENT_MAX_WORKERS = 8

# ── Logging ──────────────────────────────────────────────────────
LOG_MAX_BYTES = 10 * 1024 * 1024  # 10 MB per log file
LOG_BACKUP_COUNT = 5
