"""Record types shared by the store, the watcher and the aggregators.

Rows are stored snake_case in SQLite; ``to_dict`` renders the camelCase
shape used on the wire.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class ProgressRecord:
    """Latest playback position for one (user, content) key."""

    id: int
    user_id: str
    content_id: str
    content_type: str
    progress_seconds: int
    total_seconds: int
    last_watched_at: int
    created_at: int = 0
    updated_at: int = 0

    @property
    def completion(self) -> float:
        if self.total_seconds <= 0:
            return 0.0
        return self.progress_seconds / self.total_seconds

    def is_completed(self, threshold: float) -> bool:
        return self.completion >= threshold

    @classmethod
    def from_row(cls, row) -> "ProgressRecord":
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            content_id=row["content_id"],
            content_type=row["content_type"],
            progress_seconds=row["progress_seconds"],
            total_seconds=row["total_seconds"],
            last_watched_at=row["last_watched_at"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProgressRecord":
        """Build from the camelCase wire shape (used by the HTTP sink)."""
        return cls(
            id=data.get("id", 0),
            user_id=data.get("userId", ""),
            content_id=data.get("contentId", ""),
            content_type=data.get("contentType", ""),
            progress_seconds=data.get("progressSeconds", 0),
            total_seconds=data.get("totalSeconds", 0),
            last_watched_at=data.get("lastWatchedAt", 0),
            created_at=data.get("createdAt", 0),
            updated_at=data.get("updatedAt", 0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "contentId": self.content_id,
            "contentType": self.content_type,
            "progressSeconds": self.progress_seconds,
            "totalSeconds": self.total_seconds,
            "lastWatchedAt": self.last_watched_at,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass
class HistoryEntry:
    """One snapshot in the append-only watch history log."""

    id: int
    user_id: str
    content_id: str
    content_type: str
    title: str
    poster_path: Optional[str]
    watched_at: int
    progress_seconds: int
    total_seconds: int

    @classmethod
    def from_row(cls, row) -> "HistoryEntry":
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            content_id=row["content_id"],
            content_type=row["content_type"],
            title=row["title"],
            poster_path=row["poster_path"],
            watched_at=row["watched_at"],
            progress_seconds=row["progress_seconds"],
            total_seconds=row["total_seconds"],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "contentId": self.content_id,
            "contentType": self.content_type,
            "title": self.title,
            "posterPath": self.poster_path,
            "watchedAt": self.watched_at,
            "progressSeconds": self.progress_seconds,
            "totalSeconds": self.total_seconds,
        }


@dataclass
class SkipWindow:
    """Intro / outro ranges for one content item.  Either may be unset."""

    id: int
    content_id: str
    content_type: str
    intro_start: Optional[int] = None
    intro_end: Optional[int] = None
    outro_start: Optional[int] = None
    outro_end: Optional[int] = None
    created_at: int = 0

    def in_intro(self, position: float) -> bool:
        return _within(position, self.intro_start, self.intro_end)

    def in_outro(self, position: float) -> bool:
        return _within(position, self.outro_start, self.outro_end)

    @classmethod
    def from_row(cls, row) -> "SkipWindow":
        return cls(
            id=row["id"],
            content_id=row["content_id"],
            content_type=row["content_type"],
            intro_start=row["intro_start"],
            intro_end=row["intro_end"],
            outro_start=row["outro_start"],
            outro_end=row["outro_end"],
            created_at=row["created_at"],
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SkipWindow":
        """Build from the camelCase wire shape (used by the HTTP sink)."""
        return cls(
            id=data.get("id", 0),
            content_id=data.get("contentId", ""),
            content_type=data.get("contentType", ""),
            intro_start=data.get("introStart"),
            intro_end=data.get("introEnd"),
            outro_start=data.get("outroStart"),
            outro_end=data.get("outroEnd"),
            created_at=data.get("createdAt", 0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "contentId": self.content_id,
            "contentType": self.content_type,
            "introStart": self.intro_start,
            "introEnd": self.intro_end,
            "outroStart": self.outro_start,
            "outroEnd": self.outro_end,
            "createdAt": self.created_at,
        }


def _within(position: float, start: Optional[int], end: Optional[int]) -> bool:
    if start is None or end is None:
        return False
    return start <= position <= end


@dataclass
class CatalogItem:
    """Display metadata for one title, as supplied by the catalog provider."""

    content_id: str
    content_type: str
    title: str
    poster_path: Optional[str] = None
    genre_ids: List[int] = field(default_factory=list)
    overview: str = ""
    rating: Optional[float] = None

    @property
    def key(self):
        return (self.content_type, self.content_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "contentId": self.content_id,
            "contentType": self.content_type,
            "title": self.title,
            "posterPath": self.poster_path,
            "genreIds": list(self.genre_ids),
            "overview": self.overview,
            "rating": self.rating,
        }


@dataclass
class RecommendationGroup:
    title: str
    items: List[CatalogItem] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"title": self.title, "items": [i.to_dict() for i in self.items]}
