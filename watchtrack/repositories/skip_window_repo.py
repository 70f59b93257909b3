"""Skip-window (intro / outro) repository mixin."""

import sqlite3
from typing import Any, Dict, Optional, Tuple

from .. import validation
from ..errors import ConflictError, NotFoundError
from ..models import SkipWindow

# snake_case column -> (wire name, invalid code)
BOUND_FIELDS: Dict[str, Tuple[str, str]] = {
    "intro_start": ("introStart", "INVALID_INTRO_START"),
    "intro_end": ("introEnd", "INVALID_INTRO_END"),
    "outro_start": ("outroStart", "INVALID_OUTRO_START"),
    "outro_end": ("outroEnd", "INVALID_OUTRO_END"),
}


class SkipWindowRepositoryMixin:
    """Per-content intro/outro ranges via ``skip_timestamps``.

    ``bounds`` arguments are partial: a missing key leaves the stored
    value alone, an explicit ``None`` clears it.
    """

    def get_window(self, content_id: str, content_type: str) -> SkipWindow:
        """Raises ``NotFoundError`` when nothing is configured (the common case)."""
        content_id = validation.require_string(content_id, "contentId", "INVALID_CONTENT_ID")
        content_type = validation.content_type(content_type, missing_code="INVALID_CONTENT_TYPE")
        window = self._find_window(content_id, content_type)
        if window is None:
            raise NotFoundError(
                "No skip timestamps found for this content", code="TIMESTAMPS_NOT_FOUND"
            )
        return window

    def get_window_by_id(self, window_id: int) -> SkipWindow:
        row = self._get_conn().execute(
            "SELECT * FROM skip_timestamps WHERE id = ?", (window_id,)
        ).fetchone()
        if row is None:
            raise NotFoundError("Skip timestamps record not found", code="RECORD_NOT_FOUND")
        return SkipWindow.from_row(row)

    def upsert_window(
        self, content_id: str, content_type: str, bounds: Dict[str, Any]
    ) -> Tuple[SkipWindow, bool]:
        """Create or merge-update the window for a content item.

        Range checks run on the merged result, independently for intro and
        outro.

        Returns:
            ``(window, created)``.
        """
        content_id = validation.require_string(content_id, "contentId", "INVALID_CONTENT_ID")
        content_type = validation.content_type(
            content_type, missing_code="INVALID_CONTENT_TYPE",
            invalid_code="INVALID_CONTENT_TYPE_VALUE",
        )
        changes = _clean_bounds(bounds)

        with self._write_lock:
            existing = self._find_window(content_id, content_type)
            merged = _merge(existing, changes)
            _check_ranges(merged)

            conn = self._get_conn()
            if existing is None:
                cursor = conn.execute(
                    """
                    INSERT INTO skip_timestamps
                        (content_id, content_type, intro_start, intro_end,
                         outro_start, outro_end, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                    (content_id, content_type, merged["intro_start"], merged["intro_end"],
                     merged["outro_start"], merged["outro_end"], self.clock()),
                )
                window_id = cursor.lastrowid
            else:
                window_id = existing.id
                self._write_bounds(window_id, changes)
            conn.commit()

        self.logger.info(
            "Skip window %s %s for %s:%s",
            window_id, "created" if existing is None else "updated", content_type, content_id,
        )
        return self.get_window_by_id(window_id), existing is None

    def update_window(self, window_id: int, changes: Dict[str, Any]) -> SkipWindow:
        """Administrative edit by id.

        ``changes`` may include ``content_id`` / ``content_type`` besides
        the four bounds.

        Raises:
            NotFoundError: unknown id.
            ConflictError: the new (content_id, content_type) is taken.
        """
        existing = self.get_window_by_id(window_id)
        key_updates: Dict[str, Any] = {}
        if changes.get("content_id") is not None:
            key_updates["content_id"] = validation.require_string(
                changes["content_id"], "contentId", "INVALID_CONTENT_ID"
            )
        if changes.get("content_type") is not None:
            key_updates["content_type"] = validation.content_type(changes["content_type"])
        bound_updates = _clean_bounds({k: v for k, v in changes.items() if k in BOUND_FIELDS})

        _check_ranges(_merge(existing, bound_updates))

        conn = self._get_conn()
        if key_updates:
            sets = ", ".join(f"{k} = ?" for k in key_updates)
            try:
                conn.execute(
                    f"UPDATE skip_timestamps SET {sets} WHERE id = ?",
                    list(key_updates.values()) + [window_id],
                )
            except sqlite3.IntegrityError:
                conn.rollback()
                raise ConflictError(
                    "Skip timestamps already exist for that content",
                    code="DUPLICATE_CONTENT",
                ) from None
        self._write_bounds(window_id, bound_updates)
        conn.commit()
        return self.get_window_by_id(window_id)

    def delete_window(self, window_id: int) -> SkipWindow:
        window = self.get_window_by_id(window_id)
        conn = self._get_conn()
        conn.execute("DELETE FROM skip_timestamps WHERE id = ?", (window_id,))
        conn.commit()
        return window

    def _write_bounds(self, window_id: int, changes: Dict[str, Optional[int]]) -> None:
        if not changes:
            return
        sets = ", ".join(f"{col} = ?" for col in changes)
        self._get_conn().execute(
            f"UPDATE skip_timestamps SET {sets} WHERE id = ?",
            list(changes.values()) + [window_id],
        )

    def _find_window(self, content_id: str, content_type: str) -> Optional[SkipWindow]:
        row = self._get_conn().execute(
            "SELECT * FROM skip_timestamps WHERE content_id = ? AND content_type = ?",
            (content_id, content_type),
        ).fetchone()
        return SkipWindow.from_row(row) if row else None


def _clean_bounds(bounds: Dict[str, Any]) -> Dict[str, Optional[int]]:
    cleaned: Dict[str, Optional[int]] = {}
    for column, (wire_name, code) in BOUND_FIELDS.items():
        if column in bounds:
            cleaned[column] = validation.optional_bound(bounds[column], wire_name, code)
    return cleaned


def _merge(existing: Optional[SkipWindow], changes: Dict[str, Optional[int]]) -> Dict[str, Any]:
    merged = {column: None for column in BOUND_FIELDS}
    if existing is not None:
        merged.update({column: getattr(existing, column) for column in BOUND_FIELDS})
    merged.update(changes)
    return merged


def _check_ranges(merged: Dict[str, Any]) -> None:
    validation.window_range(
        merged["intro_start"], merged["intro_end"], "intro", "INVALID_INTRO_RANGE"
    )
    validation.window_range(
        merged["outro_start"], merged["outro_end"], "outro", "INVALID_OUTRO_RANGE"
    )
