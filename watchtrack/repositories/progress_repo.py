"""Watch progress repository mixin."""

from typing import List, Optional, Tuple

from .. import validation
from ..errors import NotFoundError
from ..models import ProgressRecord
from ..utils import user_room


class ProgressRepositoryMixin:
    """Latest resume position per (user, content) via ``watch_progress``."""

    def upsert_progress(
        self,
        user_id: str,
        content_id: str,
        content_type: str,
        progress_seconds: int,
        total_seconds: int,
    ) -> Tuple[ProgressRecord, bool]:
        """Insert or overwrite the resume position for a key.

        Whether an existing row is overwritten is decided by the configured
        write policy (last writer wins unless configured otherwise).

        Returns:
            ``(record, created)``.  ``created`` is True for a new row.

        Raises:
            ValidationError: on any field or range violation.
        """
        user_id = validation.require_string(user_id, "userId", "MISSING_USER_ID")
        content_id = validation.require_string(content_id, "contentId", "MISSING_CONTENT_ID")
        content_type = validation.content_type(content_type)
        progress_seconds, total_seconds = validation.progress_pair(progress_seconds, total_seconds)

        with self._write_lock:
            existing = self._find_progress(user_id, content_id, content_type)
            if not self.policy.allows(existing, progress_seconds, total_seconds):
                self.logger.debug(
                    "Progress write for %s/%s:%s rejected by %s policy (%s < %s)",
                    user_id, content_type, content_id, self.policy.name,
                    progress_seconds, existing.progress_seconds,
                )
                return existing, False

            now = self.clock()
            conn = self._get_conn()
            conn.execute(
                """
                INSERT INTO watch_progress
                    (user_id, content_id, content_type, progress_seconds, total_seconds,
                     last_watched_at, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(user_id, content_id, content_type) DO UPDATE SET
                    progress_seconds = excluded.progress_seconds,
                    total_seconds = excluded.total_seconds,
                    last_watched_at = excluded.last_watched_at,
                    updated_at = excluded.updated_at
            """,
                (user_id, content_id, content_type, progress_seconds, total_seconds,
                 now, now, now),
            )
            conn.commit()
            record = self._find_progress(user_id, content_id, content_type)

        self.broadcast("progress_update", record.to_dict(), room=user_room(record.user_id))
        return record, existing is None

    def get_progress(self, user_id: str, content_id: str, content_type: str) -> ProgressRecord:
        """Point lookup.

        Raises:
            NotFoundError: when nothing is stored for the key.
        """
        user_id = validation.require_string(user_id, "userId", "MISSING_USER_ID")
        content_id = validation.require_string(content_id, "contentId", "INVALID_CONTENT_ID")
        content_type = validation.content_type(content_type, missing_code="INVALID_CONTENT_TYPE")
        record = self._find_progress(user_id, content_id, content_type)
        if record is None:
            raise NotFoundError("Watch progress not found", code="NOT_FOUND")
        return record

    def list_progress(
        self, user_id: str, limit: Optional[int] = None, offset: int = 0
    ) -> List[ProgressRecord]:
        """All of a user's records, most recently watched first.

        No completion filtering happens here; ``limit=None`` is unbounded.
        """
        user_id = validation.require_string(user_id, "userId", "MISSING_USER_ID")
        conn = self._get_conn()
        rows = conn.execute(
            """
            SELECT * FROM watch_progress
            WHERE user_id = ?
            ORDER BY last_watched_at DESC, id DESC
            LIMIT ? OFFSET ?
        """,
            (user_id, -1 if limit is None else limit, offset),
        ).fetchall()
        return [ProgressRecord.from_row(row) for row in rows]

    def delete_progress(self, record_id: int) -> ProgressRecord:
        """Remove one record by id and return it.

        Raises:
            NotFoundError: when the id does not exist (including a second
                delete of the same id).
        """
        conn = self._get_conn()
        row = conn.execute("SELECT * FROM watch_progress WHERE id = ?", (record_id,)).fetchone()
        if row is None:
            raise NotFoundError("Watch progress record not found", code="RECORD_NOT_FOUND")
        conn.execute("DELETE FROM watch_progress WHERE id = ?", (record_id,))
        conn.commit()
        record = ProgressRecord.from_row(row)
        self.logger.info(
            "Progress %s removed for %s (%s:%s)",
            record_id, record.user_id, record.content_type, record.content_id,
        )
        return record

    def _find_progress(
        self, user_id: str, content_id: str, content_type: str
    ) -> Optional[ProgressRecord]:
        row = self._get_conn().execute(
            "SELECT * FROM watch_progress "
            "WHERE user_id = ? AND content_id = ? AND content_type = ?",
            (user_id, content_id, content_type),
        ).fetchone()
        return ProgressRecord.from_row(row) if row else None
