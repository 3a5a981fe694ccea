from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, Literal, Optional, Tuple

from pushup_backend.core.errors import InvalidChallengeState

ChallengeState = Literal["no_challenge", "active", "broken"]


@dataclass(frozen=True)
class Completion:
    """One completed challenge day. day_number is display-only; the day offset is authoritative."""

    day: date
    day_number: int
    completed_at: datetime


@dataclass(frozen=True)
class ChallengeRecord:
    """
    Domain model for a user's pushup challenge. Day-level, no direct DB concerns.

    Completions are unique by day and kept sorted; every mutation produces a new record.
    """

    start_date: date
    completions: Tuple[Completion, ...] = ()
    longest_streak: int = 0

    def __post_init__(self):
        ordered = tuple(sorted(self.completions, key=lambda c: c.day))
        days = [c.day for c in ordered]
        if len(set(days)) != len(days):
            raise InvalidChallengeState("Challenge record has more than one completion for the same day")
        if self.longest_streak < 0:
            raise InvalidChallengeState("longest_streak cannot be negative")
        object.__setattr__(self, "completions", ordered)

    def completion_index(self) -> Dict[date, Completion]:
        return {c.day: c for c in self.completions}

    def completion_for(self, day: date) -> Optional[Completion]:
        for completion in self.completions:
            if completion.day == day:
                return completion
        return None

    @property
    def completed_days(self) -> frozenset:
        return frozenset(c.day for c in self.completions)


@dataclass(frozen=True)
class TimelineEntry:
    """One calendar day from start_date through today (derived, never persisted)."""

    day: date
    day_number: int
    completed: bool
    completed_at: Optional[datetime]
    is_today: bool

    @property
    def target_reps(self) -> int:
        # Day N of the challenge is N pushups
        return self.day_number


@dataclass(frozen=True)
class ChallengeSnapshot:
    """Read model handed to the API: the record plus everything derived from it."""

    state: ChallengeState
    record: Optional[ChallengeRecord]
    timeline: Tuple[TimelineEntry, ...]
    alive: bool
    current_run: int
    longest_streak: int
    today_index: int
    next_action_hint: str

    @property
    def today(self) -> Optional[TimelineEntry]:
        if self.today_index < 0:
            return None
        return self.timeline[self.today_index]
