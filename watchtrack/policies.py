"""Progress write policies.

The store asks the configured policy whether an incoming position may
replace the stored one.  The default keeps the historical behaviour:
whichever write reaches the store last wins, even if it moves the resume
point backwards.
"""

from typing import Optional

from .constants import PROGRESS_POLICY_LAST_WRITER_WINS, PROGRESS_POLICY_ONLY_ADVANCE
from .models import ProgressRecord


class ProgressWritePolicy:
    """Strategy interface for the progress upsert."""

    name = "base"

    def allows(self, existing: Optional[ProgressRecord], progress_seconds: int,
               total_seconds: int) -> bool:
        raise NotImplementedError


class LastWriterWins(ProgressWritePolicy):
    """Overwrite unconditionally; a lagging tab may regress the resume point."""

    name = PROGRESS_POLICY_LAST_WRITER_WINS

    def allows(self, existing, progress_seconds, total_seconds):
        return True


class OnlyAdvance(ProgressWritePolicy):
    """Reject writes that would move the stored position backwards.

    A changed ``total_seconds`` (different cut, re-encoded stream) always
    goes through since the old position is not comparable.
    """

    name = PROGRESS_POLICY_ONLY_ADVANCE

    def allows(self, existing, progress_seconds, total_seconds):
        if existing is None or existing.total_seconds != total_seconds:
            return True
        return progress_seconds >= existing.progress_seconds


_POLICIES = {
    LastWriterWins.name: LastWriterWins,
    OnlyAdvance.name: OnlyAdvance,
}


def get_policy(name: str) -> ProgressWritePolicy:
    try:
        return _POLICIES[name]()
    except KeyError:
        raise ValueError(f"Unknown progress write policy: {name}") from None
