"""
Trusted channel to an embedded third-party player.

The player frame posts position reports to the host page.  Anything can
post to the host page, so every message is checked here before the
watcher sees it: the sender's hostname must be on the allow-list and the
payload must decode to a pair of sane numbers.
"""

import json
import math
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Optional
from urllib.parse import urlsplit

from ..errors import UntrustedInputError


@dataclass(frozen=True)
class PositionEvent:
    """A validated position report (seconds)."""

    current_time: float
    duration: float


class PlayerChannel:
    """Origin check, payload parsing and outbound seek commands.

    Args:
        trusted_hosts: Player hostnames. A sender matches an entry when its
            hostname equals it or is a subdomain of it.
        post_message: Callable used to send a command dict to the player.
    """

    def __init__(
        self,
        trusted_hosts: Iterable[str],
        post_message: Optional[Callable[[Dict[str, Any]], None]] = None,
    ):
        self.trusted_hosts = tuple(h.strip().lower().lstrip(".") for h in trusted_hosts if h.strip())
        self.post_message = post_message

    @classmethod
    def from_settings(cls, settings, post_message=None) -> "PlayerChannel":
        return cls(settings.trusted_player_hosts, post_message=post_message)

    def is_trusted(self, origin: Any) -> bool:
        if not isinstance(origin, str) or not origin:
            return False
        try:
            parts = urlsplit(origin)
        except ValueError:
            return False
        if parts.scheme not in ("http", "https") or not parts.hostname:
            return False
        host = parts.hostname.lower()
        return any(host == trusted or host.endswith("." + trusted) for trusted in self.trusted_hosts)

    def accept(self, origin: Any, data: Any) -> PositionEvent:
        """Validate one inbound message.

        Raises:
            UntrustedInputError: foreign origin (``reason="origin"``) or
                malformed payload (``reason="payload"``).
        """
        if not self.is_trusted(origin):
            raise UntrustedInputError("Message from untrusted origin", reason="origin")
        return self.parse_payload(data)

    @staticmethod
    def parse_payload(data: Any) -> PositionEvent:
        """Decode ``{timestamp, duration}`` from a dict or a JSON string.

        ``currentTime`` is accepted in place of ``timestamp``.
        """
        if isinstance(data, (str, bytes)):
            try:
                data = json.loads(data)
            except (ValueError, RecursionError):
                raise UntrustedInputError("Payload is not JSON", reason="payload") from None
        if not isinstance(data, dict):
            raise UntrustedInputError("Payload is not an object", reason="payload")

        timestamp = data.get("timestamp", data.get("currentTime"))
        duration = data.get("duration")
        if not _is_position(timestamp) or not _is_position(duration):
            raise UntrustedInputError("Payload lacks a usable position", reason="payload")
        return PositionEvent(current_time=float(timestamp), duration=float(duration))

    def send_seek(self, seconds: float) -> bool:
        """Ask the player to jump to ``seconds``. False when nothing to send through."""
        if self.post_message is None:
            return False
        self.post_message({"type": "seek", "time": seconds})
        return True


def _is_position(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    try:
        return math.isfinite(value) and value >= 0
    except OverflowError:
        # int too large for a float
        return False
