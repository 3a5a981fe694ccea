"""Pure streak reads over a record or its timeline. Nothing here enforces transitions."""
from __future__ import annotations

from typing import Optional, Sequence

from pushup_backend.features.streaks.calendar import add_days
from pushup_backend.models.challenge import ChallengeRecord, TimelineEntry


def is_alive(timeline: Sequence[TimelineEntry]) -> bool:
    """True while every day before today was completed. Today is still open, so it never counts."""
    return all(entry.completed for entry in timeline if not entry.is_today)


def current_run_length(record: ChallengeRecord) -> int:
    """Consecutive completed days counted from day 1, stopping at the first gap."""
    completed = record.completed_days
    run = 0
    while add_days(record.start_date, run) in completed:
        run += 1
    return run


def today_index(timeline: Sequence[TimelineEntry]) -> int:
    for index in range(len(timeline) - 1, -1, -1):
        if timeline[index].is_today:
            return index
    return -1


def find_today(timeline: Sequence[TimelineEntry]) -> Optional[TimelineEntry]:
    index = today_index(timeline)
    return timeline[index] if index >= 0 else None
