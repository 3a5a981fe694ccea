from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from typing import Callable, Dict, List, Optional

from pushup_backend.core.errors import AppError
from pushup_backend.core.logging import log_event
from pushup_backend.features.challenges.machine import ChallengeStateMachine
from pushup_backend.features.challenges.persistence import ChallengeStore
from pushup_backend.features.streaks import calendar
from pushup_backend.features.streaks.calculator import current_run_length, is_alive, today_index
from pushup_backend.features.streaks.timeline import build_timeline
from pushup_backend.models.challenge import ChallengeRecord, ChallengeSnapshot

Transition = Callable[[Optional[ChallengeRecord], datetime], ChallengeRecord]


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of one user action: the resulting record and what changed."""

    record: ChallengeRecord
    changed: bool
    emitted: List[dict] = field(default_factory=list)


class ChallengeService:
    """
    Applies state machine transitions to the record held by the store.

    The store is the source of truth: every read and every transition starts from a
    fresh load, so writes from other devices or processes are always seen. A computed
    record only becomes current once the store accepted it. When the save fails, the
    stored record stays current, the computed record is kept as pending so the same
    save can be retried, and the store's error propagates unchanged.
    """

    def __init__(
        self,
        store: ChallengeStore,
        *,
        tz: Optional[tzinfo] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._store = store
        self._machine = ChallengeStateMachine(tz)
        self._clock = clock or calendar.utc_now
        self._pending: Dict[str, ChallengeRecord] = {}

    @property
    def store(self) -> ChallengeStore:
        return self._store

    # Reads -------------------------------------------------------------
    def current(self, user_id: str) -> Optional[ChallengeRecord]:
        return self._store.load(user_id)

    def pending(self, user_id: str) -> Optional[ChallengeRecord]:
        return self._pending.get(user_id)

    def snapshot(self, user_id: str) -> ChallengeSnapshot:
        return self.describe(self.current(user_id), now=self._clock())

    def describe(self, record: Optional[ChallengeRecord], *, now: datetime) -> ChallengeSnapshot:
        state = self._machine.state_of(record, now=now)
        if record is None:
            return ChallengeSnapshot(
                state=state,
                record=None,
                timeline=(),
                alive=False,
                current_run=0,
                longest_streak=0,
                today_index=-1,
                next_action_hint=_next_action_hint(state, None),
            )

        timeline = tuple(build_timeline(record, today=self._machine.today(now)))
        index = today_index(timeline)
        return ChallengeSnapshot(
            state=state,
            record=record,
            timeline=timeline,
            alive=is_alive(timeline),
            current_run=current_run_length(record),
            longest_streak=record.longest_streak,
            today_index=index,
            next_action_hint=_next_action_hint(state, timeline[index] if index >= 0 else None),
        )

    # Actions -----------------------------------------------------------
    def start(self, user_id: str) -> TransitionResult:
        return self._apply(user_id, "challenge.started", lambda record, now: self._machine.start(record, now=now))

    def complete_today(self, user_id: str) -> TransitionResult:
        return self._apply(
            user_id, "challenge.completed", lambda record, now: self._machine.complete_today(record, now=now)
        )

    def undo_today(self, user_id: str) -> TransitionResult:
        return self._apply(
            user_id, "challenge.completion_undone", lambda record, now: self._machine.undo_today(record, now=now)
        )

    def reset(self, user_id: str) -> TransitionResult:
        return self._apply(user_id, "challenge.reset", lambda record, now: self._machine.reset(record, now=now))

    def retry_save(self, user_id: str) -> TransitionResult:
        """Re-send the record from the last failed save, unchanged."""
        record = self._pending.get(user_id)
        if record is None:
            current = self.current(user_id)
            if current is None:
                raise AppError("Nothing to save", code="nothing_pending", status_code=409)
            return TransitionResult(record=current, changed=False)
        self._persist(user_id, record, "challenge.save_retried")
        return TransitionResult(record=record, changed=True)

    # Internal helpers -------------------------------------------------
    def _apply(self, user_id: str, event_type: str, transition: Transition) -> TransitionResult:
        now = self._clock()
        previous = self.current(user_id)
        record = transition(previous, now)

        if previous is not None and record == previous:
            log_event("info", "challenge.noop", user_id=user_id, event_type=event_type)
            return TransitionResult(record=previous, changed=False)

        self._persist(user_id, record, event_type)
        return TransitionResult(record=record, changed=True, emitted=[_event(event_type, user_id, record, now)])

    def _persist(self, user_id: str, record: ChallengeRecord, event_type: str) -> None:
        try:
            self._store.save(user_id, record)
        except Exception as exc:
            self._pending[user_id] = record
            log_event(
                "error",
                "challenge.save_failed",
                user_id=user_id,
                event_type=event_type,
                error_code=getattr(exc, "code", type(exc).__name__),
            )
            raise

        self._pending.pop(user_id, None)
        log_event(
            "info",
            event_type,
            user_id=user_id,
            event_type=event_type,
            extra={
                "start_date": calendar.format_day(record.start_date),
                "completed_days": len(record.completions),
                "longest_streak": record.longest_streak,
            },
        )


def _event(event_type: str, user_id: str, record: ChallengeRecord, now: datetime) -> dict:
    payload = {
        "userId": user_id,
        "startDate": calendar.format_day(record.start_date),
        "longestStreak": record.longest_streak,
        "occurredAt": calendar.format_instant(now),
    }
    return {"type": event_type, "payload": payload}


def _next_action_hint(state: str, today_entry) -> str:
    if state == "no_challenge":
        return "Start the challenge: day 1 is 1 pushup, day 2 is 2 pushups."
    if state == "broken":
        return "Streak broken, you missed a day. Restart to try again."
    if today_entry is None:
        return "Keep the streak alive."
    if today_entry.completed:
        return "Today's pushups done!"
    reps = today_entry.target_reps
    return f"Do {reps} pushup{'s' if reps > 1 else ''} today to keep the streak alive."
