"""Fetch-window selection for live cycles.

``since_last_stored`` resumes from the newest stored interval so downtime
gaps are filled, capped at ``lookback_hours``; ``rolling`` always refetches
the last ``lookback_hours``. Both extend ``lookahead_hours`` past now.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from core.config import SourceConfig
from core.constants import WINDOW_POLICY_ROLLING
from core.types import TimeWindow


@dataclass(frozen=True)
class WindowPolicy:
    """Window rule configured for one source."""

    kind: str
    lookback: timedelta
    lookahead: timedelta

    @classmethod
    def for_source(cls, source: SourceConfig) -> "WindowPolicy":
        """Build the policy configured for ``source``."""
        return cls(
            kind=source.window_policy,
            lookback=timedelta(hours=source.lookback_hours),
            lookahead=timedelta(hours=source.lookahead_hours),
        )

    def window(self, now: datetime, last_stored_end: datetime | None) -> TimeWindow:
        """Return the window for a cycle starting at ``now``.

        Args:
            now: Current UTC time.
            last_stored_end: End of the newest stored interval, if any.
        """
        earliest = now - self.lookback
        end = now + self.lookahead
        if self.kind == WINDOW_POLICY_ROLLING or last_stored_end is None:
            return TimeWindow(start=earliest, end=end)
        return TimeWindow(start=max(last_stored_end, earliest), end=end)
