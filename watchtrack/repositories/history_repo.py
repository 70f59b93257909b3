"""Watch history repository mixin."""

from typing import List, Optional, Tuple

from .. import validation
from ..models import HistoryEntry
from ..utils import days_ago_ts


class HistoryRepositoryMixin:
    """Append-only viewing log via ``watch_history``.

    Several rows per (user, content) are expected; nothing here updates a
    row.  ``purge_history`` is the administrative escape hatch.
    """

    def append_history(
        self,
        user_id: str,
        content_id: str,
        content_type: str,
        title: str,
        poster_path: Optional[str],
        progress_seconds: int,
        total_seconds: int,
        watched_at: Optional[int] = None,
    ) -> HistoryEntry:
        """Insert a new snapshot.  ``watched_at`` defaults to now."""
        user_id = validation.require_string(user_id, "userId", "INVALID_USER_ID")
        content_id = validation.require_string(content_id, "contentId", "INVALID_CONTENT_ID")
        content_type = validation.content_type(
            content_type, missing_code="INVALID_CONTENT_TYPE",
            invalid_code="INVALID_CONTENT_TYPE_VALUE",
        )
        title = validation.require_string(title, "title", "INVALID_TITLE")
        progress_seconds, total_seconds = validation.progress_pair(progress_seconds, total_seconds)
        if watched_at is None:
            watched_at = self.clock()
        else:
            watched_at = validation.whole_number(
                watched_at, "watchedAt",
                missing_code="INVALID_WATCHED_AT", invalid_code="INVALID_WATCHED_AT",
            )
        if not isinstance(poster_path, str) or not poster_path.strip():
            poster_path = None

        conn = self._get_conn()
        cursor = conn.execute(
            """
            INSERT INTO watch_history
                (user_id, content_id, content_type, title, poster_path,
                 watched_at, progress_seconds, total_seconds)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """,
            (user_id, content_id, content_type, title, poster_path,
             watched_at, progress_seconds, total_seconds),
        )
        conn.commit()
        row = conn.execute(
            "SELECT * FROM watch_history WHERE id = ?", (cursor.lastrowid,)
        ).fetchone()
        self.logger.debug("History entry %s appended for %s", cursor.lastrowid, user_id)
        return HistoryEntry.from_row(row)

    def list_history(
        self,
        user_id: str,
        since_days: int,
        content_type: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> Tuple[List[HistoryEntry], int]:
        """Entries watched in the last ``since_days`` days, newest first.

        Returns:
            ``(page, total)`` where ``total`` counts every matching row.
        """
        user_id = validation.require_string(user_id, "userId", "MISSING_USER_ID")
        clauses = ["user_id = ?", "watched_at >= ?"]
        params: list = [user_id, days_ago_ts(since_days, now=self.clock())]
        if content_type:
            clauses.append("content_type = ?")
            params.append(validation.content_type(content_type))
        where = " AND ".join(clauses)

        conn = self._get_conn()
        total = conn.execute(
            f"SELECT COUNT(*) FROM watch_history WHERE {where}", params
        ).fetchone()[0]
        rows = conn.execute(
            f"SELECT * FROM watch_history WHERE {where} "
            "ORDER BY watched_at DESC, id DESC LIMIT ? OFFSET ?",
            params + [-1 if limit is None else limit, offset],
        ).fetchall()
        return [HistoryEntry.from_row(row) for row in rows], total

    def purge_history(self, user_id: str) -> int:
        """Delete every history entry of a user.  Returns the row count."""
        user_id = validation.require_string(user_id, "userId", "MISSING_USER_ID")
        conn = self._get_conn()
        result = conn.execute("DELETE FROM watch_history WHERE user_id = ?", (user_id,))
        conn.commit()
        self.logger.info("Purged %d history entries for %s", result.rowcount, user_id)
        return result.rowcount
