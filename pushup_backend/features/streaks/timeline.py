from __future__ import annotations

from datetime import date
from typing import List

from pushup_backend.core.errors import InvalidChallengeState
from pushup_backend.features.streaks.calendar import add_days, days_between, format_day
from pushup_backend.models.challenge import ChallengeRecord, TimelineEntry


def build_timeline(record: ChallengeRecord, *, today: date) -> List[TimelineEntry]:
    """
    Expand a challenge into one entry per calendar day, start_date through today.

    The list is built in full: callers need its length and indexed access
    (e.g. to find today's position). Completions after today are not shown.
    """
    length = days_between(record.start_date, today) + 1
    if length < 1:
        raise InvalidChallengeState(
            f"Challenge start date {format_day(record.start_date)} is after today ({format_day(today)})"
        )

    by_day = record.completion_index()
    entries: List[TimelineEntry] = []
    for offset in range(length):
        day = add_days(record.start_date, offset)
        completion = by_day.get(day)
        entries.append(
            TimelineEntry(
                day=day,
                day_number=offset + 1,
                completed=completion is not None,
                completed_at=completion.completed_at if completion else None,
                is_today=offset == length - 1,
            )
        )
    return entries
