"""
Per-session playback watcher.

One ``SessionWatcher`` lives for one mounted player view.  It reacts to
position reports coming through a ``PlayerChannel``:

* commits progress every ``commit_interval_seconds`` of playback position,
* toggles the skip-intro / skip-outro prompts at the window boundaries,
* appends one history entry per session once playback is past
  ``history_min_seconds``, or when the fallback timer fires for players
  that never report.

Writes go to a ``TelemetrySink`` on a single background worker and never
block or break event handling.  Teardown does not flush: up to one commit
interval of position may be lost when the view goes away.
"""

import threading
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass, replace
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

from ..config import TelemetrySettings
from ..errors import UntrustedInputError
from ..observability.metrics import MetricsCollector
from ..utils import new_guest_id, setup_logger, whole_seconds
from .channel import PlayerChannel

if TYPE_CHECKING:
    from ..models import SkipWindow
    from .sinks import TelemetrySink


class WatcherState(Enum):
    IDLE = "idle"
    ACTIVE = "active"
    INTRO = "intro"
    OUTRO = "outro"
    ENDED = "ended"


@dataclass
class SessionState:
    """Live view of one playback session.  Never persisted."""

    current_time: float = 0.0
    duration: float = 0.0
    skip_intro_visible: bool = False
    skip_outro_visible: bool = False
    last_committed_second: int = 0
    history_recorded: bool = False


Unsubscribe = Callable[[], None]
Subscribe = Callable[[Callable[[Any, Any], bool]], Optional[Unsubscribe]]


class SessionWatcher:
    """State machine driven by player position reports.

    Usage::

        watcher = SessionWatcher(StoreSink(AppState()), channel,
                                 user_id="u1", content_id="603",
                                 content_type="movie", title="The Matrix")
        watcher.start()
        watcher.handle_message("https://player.videasy.net", '{"timestamp": 12, "duration": 8160}')
        ...
        watcher.stop()
    """

    def __init__(
        self,
        sink: "TelemetrySink",
        channel: PlayerChannel,
        *,
        content_id: str,
        content_type: str,
        title: str,
        user_id: Optional[str] = None,
        poster_path: Optional[str] = None,
        settings: Optional[TelemetrySettings] = None,
        executor: Optional[Executor] = None,
        timer_factory: Callable[..., Any] = threading.Timer,
        on_state_change: Optional[Callable[[WatcherState, WatcherState], None]] = None,
    ):
        """
        Args:
            sink: Destination for progress and history writes.
            channel: Trusted channel to the embedded player.
            content_id: Catalog id of the title being played.
            content_type: ``movie`` or ``series``.
            title: Display title captured into history.
            user_id: Authenticated user id. A guest id is minted when ``None``.
            poster_path: Display artwork captured into history.
            settings: Thresholds and intervals. Defaults apply when ``None``.
            executor: Runs sink writes. Defaults to a single worker thread.
            timer_factory: ``(delay, fn) -> timer`` with ``start``/``cancel``.
            on_state_change: Called with ``(old, new)`` on every transition.
        """
        self.sink = sink
        self.channel = channel
        self.user_id = user_id or new_guest_id()
        self.content_id = content_id
        self.content_type = content_type
        self.title = title
        self.poster_path = poster_path
        self.settings = settings or TelemetrySettings()
        self.on_state_change = on_state_change

        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="session-watcher"
        )
        self._timer_factory = timer_factory
        self._timer = None
        self._unsubscribe: Optional[Unsubscribe] = None
        self._lock = threading.RLock()
        self._state = WatcherState.IDLE
        self._session = SessionState()
        self._window: Optional["SkipWindow"] = None
        self.resume_seconds = 0

        self.logger = setup_logger("session_watcher", "watcher.log")
        self.metrics = MetricsCollector()

    # ── Lifecycle ────────────────────────────────────────────────

    def start(self, subscribe: Optional[Subscribe] = None) -> int:
        """Load the skip window and resume point, arm the fallback timer.

        Args:
            subscribe: Attaches ``handle_message`` to the host's message
                source and returns a callable that detaches it.

        Returns:
            The resume position in whole seconds (0 for a fresh start).
        """
        with self._lock:
            if self._state is not WatcherState.IDLE:
                return self.resume_seconds

            self._window = self._load_window()
            self.resume_seconds = self.resume_point()

            timer = self._timer_factory(
                self.settings.history_fallback_delay_seconds, self._on_fallback_timer
            )
            timer.daemon = True
            self._timer = timer
            self._transition(WatcherState.ACTIVE)
            timer.start()
        self.metrics.gauge_add("active_sessions", 1)

        if subscribe is not None:
            unsubscribe = subscribe(self.handle_message)
            with self._lock:
                if self._state is not WatcherState.ENDED:
                    self._unsubscribe, unsubscribe = unsubscribe, None
            # stopped while subscribing
            if unsubscribe is not None:
                unsubscribe()

        self.logger.debug(
            "Session started for %s on %s:%s (resume at %ss)",
            self.user_id, self.content_type, self.content_id, self.resume_seconds,
        )
        return self.resume_seconds

    def stop(self) -> None:
        """Tear the session down.  Pending writes may or may not land."""
        with self._lock:
            if self._state is WatcherState.ENDED:
                return
            was_started = self._state is not WatcherState.IDLE
            self._transition(WatcherState.ENDED)
            timer, self._timer = self._timer, None
            unsubscribe, self._unsubscribe = self._unsubscribe, None

        if timer is not None:
            timer.cancel()
        if unsubscribe is not None:
            unsubscribe()
        self._executor.shutdown(wait=False)
        if was_started:
            self.metrics.gauge_add("active_sessions", -1)
        self.logger.debug("Session ended for %s on %s:%s",
                          self.user_id, self.content_type, self.content_id)

    # ── Inbound events ───────────────────────────────────────────

    def handle_message(self, origin: Any, data: Any) -> bool:
        """Process one message from the host page.

        Returns:
            True when the message was a valid position report and was applied.
        """
        try:
            event = self.channel.accept(origin, data)
        except UntrustedInputError as e:
            self.metrics.inc("player_events_total", labels={"result": f"rejected_{e.reason}"})
            self.logger.debug("Dropped player message (%s)", e.reason)
            return False

        settings = self.settings
        with self._lock:
            if self._state in (WatcherState.IDLE, WatcherState.ENDED):
                self.metrics.inc("player_events_total", labels={"result": "ignored"})
                return False

            s = self._session
            s.current_time = event.current_time
            s.duration = event.duration

            second = whole_seconds(s.current_time)
            if (
                s.duration > 0
                and second % settings.commit_interval_seconds == 0
                and second != s.last_committed_second
            ):
                s.last_committed_second = second
                total = self._total_seconds(s.duration)
                self._dispatch("progress", self.sink.upsert_progress,
                               self.user_id, self.content_id, self.content_type,
                               min(second, total), total)

            self._evaluate_windows()

            if (
                not s.history_recorded
                and s.current_time > settings.history_min_seconds
                and s.duration > 0
            ):
                s.history_recorded = True
                self._append_history(s.current_time, s.duration)

        self.metrics.inc("player_events_total", labels={"result": "accepted"})
        return True

    # ── User actions ─────────────────────────────────────────────

    def skip_intro(self) -> bool:
        """Seek to the end of the intro and hide the prompt right away."""
        return self._skip(intro=True)

    def skip_outro(self) -> bool:
        """Seek to the end of the outro and hide the prompt right away."""
        return self._skip(intro=False)

    # ── Queries ──────────────────────────────────────────────────

    @property
    def state(self) -> WatcherState:
        return self._state

    @property
    def window(self) -> Optional["SkipWindow"]:
        return self._window

    def snapshot(self) -> SessionState:
        """Copy of the current session state."""
        with self._lock:
            return replace(self._session)

    def resume_point(self) -> int:
        """Stored position for this title, or 0 if none or already finished."""
        try:
            record = self.sink.get_progress(self.user_id, self.content_id, self.content_type)
        except Exception as e:
            self.logger.warning("Resume lookup failed for %s:%s: %s",
                                self.content_type, self.content_id, e)
            return 0
        if record is None or record.is_completed(self.settings.completion_threshold):
            return 0
        return record.progress_seconds

    def to_dict(self) -> Dict[str, Any]:
        s = self.snapshot()
        return {
            "state": self._state.value,
            "currentTime": s.current_time,
            "duration": s.duration,
            "skipIntroVisible": s.skip_intro_visible,
            "skipOutroVisible": s.skip_outro_visible,
            "lastCommittedSecond": s.last_committed_second,
            "historyRecorded": s.history_recorded,
        }

    # ── Internals ────────────────────────────────────────────────

    def _load_window(self) -> Optional["SkipWindow"]:
        try:
            return self.sink.get_window(self.content_id, self.content_type)
        except Exception as e:
            self.logger.warning("Skip window lookup failed for %s:%s: %s",
                                self.content_type, self.content_id, e)
            return None

    def _evaluate_windows(self) -> None:
        """Re-derive prompt visibility from the position alone.  Lock held."""
        s = self._session
        window = self._window
        s.skip_intro_visible = window is not None and window.in_intro(s.current_time)
        s.skip_outro_visible = window is not None and window.in_outro(s.current_time)
        self._sync_state()

    def _sync_state(self) -> None:
        if self._state in (WatcherState.IDLE, WatcherState.ENDED):
            return
        if self._session.skip_intro_visible:
            target = WatcherState.INTRO
        elif self._session.skip_outro_visible:
            target = WatcherState.OUTRO
        else:
            target = WatcherState.ACTIVE
        self._transition(target)

    def _transition(self, new: WatcherState) -> None:
        old = self._state
        if old is new:
            return
        self._state = new
        if self.on_state_change is not None:
            self.on_state_change(old, new)

    def _skip(self, intro: bool) -> bool:
        with self._lock:
            window = self._window
            if self._state is WatcherState.ENDED or window is None:
                return False
            target = window.intro_end if intro else window.outro_end
            if target is None:
                return False
            if intro:
                self._session.skip_intro_visible = False
            else:
                self._session.skip_outro_visible = False
            self._sync_state()
        return self.channel.send_seek(target)

    def _on_fallback_timer(self) -> None:
        with self._lock:
            s = self._session
            if self._state is WatcherState.ENDED or s.history_recorded:
                return
            s.history_recorded = True
            duration = s.duration if s.duration > 0 else self.settings.fallback_duration_seconds
            self._append_history(s.current_time, duration)
        self.logger.debug("Fallback history entry queued for %s:%s",
                          self.content_type, self.content_id)

    def _append_history(self, current_time: float, duration: float) -> None:
        """Lock held."""
        total = self._total_seconds(duration)
        self._dispatch("history", self.sink.append_history,
                       self.user_id, self.content_id, self.content_type,
                       self.title, self.poster_path,
                       min(whole_seconds(current_time), total), total)

    @staticmethod
    def _total_seconds(duration: float) -> int:
        return max(1, whole_seconds(duration))

    def _dispatch(self, kind: str, fn: Callable[..., Any], *args) -> None:
        """Queue a sink write.  Lock held, state not ENDED."""
        self._executor.submit(self._persist, kind, fn, args)

    def _persist(self, kind: str, fn: Callable[..., Any], args: tuple) -> None:
        try:
            fn(*args)
        except Exception as e:
            self.metrics.inc("telemetry_write_failures_total", labels={"kind": kind})
            self.logger.warning("%s write for %s:%s failed: %s",
                                kind.capitalize(), self.content_type, self.content_id, e)
            return
        self.metrics.inc(
            "progress_upserts_total" if kind == "progress" else "history_appends_total",
            labels={"result": "ok", "source": "watcher"},
        )
