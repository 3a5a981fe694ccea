from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime, tzinfo
from typing import Optional

from pushup_backend.core.errors import InvalidChallengeState, InvalidTransition
from pushup_backend.features.streaks import calendar
from pushup_backend.features.streaks.calculator import current_run_length, is_alive
from pushup_backend.features.streaks.timeline import build_timeline
from pushup_backend.models.challenge import ChallengeRecord, ChallengeState, Completion


class ChallengeStateMachine:
    """
    Pure transitions over a ChallengeRecord: NoChallenge -> Active -> Broken -> (reset) Active.

    Every operation takes the current record (or None) plus an explicit ``now`` and
    returns the next record. Records are never modified in place. Re-applying an
    operation on the same day returns the record unchanged instead of raising.
    """

    def __init__(self, tz: Optional[tzinfo] = None):
        self._tz = tz

    def today(self, now: datetime) -> date:
        return calendar.today(now, self._tz)

    # Reads -------------------------------------------------------------
    def validate(self, record: ChallengeRecord, *, today: date) -> None:
        """Reject records that cannot be consistent with today. Never repairs them."""
        if record.start_date > today:
            raise InvalidChallengeState(
                f"Challenge starts on {calendar.format_day(record.start_date)}, after today "
                f"({calendar.format_day(today)})"
            )
        for completion in record.completions:
            if completion.day < record.start_date or completion.day > today:
                raise InvalidChallengeState(
                    f"Completion for {calendar.format_day(completion.day)} is outside "
                    f"{calendar.format_day(record.start_date)}..{calendar.format_day(today)}"
                )

    def state_of(self, record: Optional[ChallengeRecord], *, now: datetime) -> ChallengeState:
        if record is None:
            return "no_challenge"
        today = self.today(now)
        self.validate(record, today=today)
        return "active" if is_alive(build_timeline(record, today=today)) else "broken"

    # Transitions -------------------------------------------------------
    def start(self, previous: Optional[ChallengeRecord], *, now: datetime) -> ChallengeRecord:
        state = self.state_of(previous, now=now)
        if state == "active":
            raise InvalidTransition("A challenge is already running; reset it to start over")
        return self._fresh(previous, now)

    def complete_today(self, record: Optional[ChallengeRecord], *, now: datetime) -> ChallengeRecord:
        if record is None:
            raise InvalidTransition("No challenge has been started")
        today = self.today(now)
        self.validate(record, today=today)

        if record.completion_for(today) is not None:
            return record
        if not is_alive(build_timeline(record, today=today)):
            raise InvalidTransition("The streak is broken; reset the challenge before completing a day")

        completion = Completion(
            day=today,
            day_number=calendar.days_between(record.start_date, today) + 1,
            completed_at=now,
        )
        candidate = replace(record, completions=record.completions + (completion,))
        return replace(
            candidate,
            longest_streak=max(record.longest_streak, current_run_length(candidate)),
        )

    def undo_today(self, record: Optional[ChallengeRecord], *, now: datetime) -> ChallengeRecord:
        if record is None:
            raise InvalidTransition("No challenge has been started")
        today = self.today(now)
        self.validate(record, today=today)

        if record.completion_for(today) is None:
            return record
        if not is_alive(build_timeline(record, today=today)):
            raise InvalidTransition("The streak is broken; nothing to undo")

        # longest_streak is a historical best and stays where it is
        return replace(
            record,
            completions=tuple(c for c in record.completions if c.day != today),
        )

    def reset(self, previous: Optional[ChallengeRecord], *, now: datetime) -> ChallengeRecord:
        # Allowed from any state, including a record that fails validation
        return self._fresh(previous, now)

    def _fresh(self, previous: Optional[ChallengeRecord], now: datetime) -> ChallengeRecord:
        return ChallengeRecord(
            start_date=self.today(now),
            completions=(),
            longest_streak=previous.longest_streak if previous else 0,
        )
