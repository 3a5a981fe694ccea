from __future__ import annotations

from datetime import datetime
from functools import lru_cache
from typing import List, Optional

from fastapi import APIRouter, Depends, Header
from pydantic import BaseModel

from pushup_backend.core.config import settings
from pushup_backend.core.errors import ValidationError
from pushup_backend.features.challenges.persistence import build_challenge_store
from pushup_backend.features.challenges.service import ChallengeService, TransitionResult
from pushup_backend.features.streaks.calendar import format_day, resolve_timezone
from pushup_backend.models.challenge import ChallengeSnapshot

router = APIRouter()


class TimelineEntryOut(BaseModel):
    date: str
    day_number: int
    target_reps: int
    completed: bool
    completed_at: Optional[datetime] = None
    is_today: bool


class SnapshotOut(BaseModel):
    state: str
    start_date: Optional[str] = None
    longest_streak: int
    current_run: int
    alive: bool
    today_completed: bool
    today_target_reps: Optional[int] = None
    today_index: int
    next_action_hint: str
    timeline: List[TimelineEntryOut]


class TransitionOut(BaseModel):
    snapshot: SnapshotOut
    changed: bool
    emitted: List[dict]


@lru_cache(maxsize=1)
def get_challenge_service() -> ChallengeService:
    return ChallengeService(
        build_challenge_store(settings),
        tz=resolve_timezone(settings.CHALLENGE_TIMEZONE),
    )


def current_user_id(x_user_id: Optional[str] = Header(None)) -> str:
    if not x_user_id or not x_user_id.strip():
        raise ValidationError("X-User-Id header is required")
    return x_user_id.strip()


def _snapshot_out(snapshot: ChallengeSnapshot) -> SnapshotOut:
    today = snapshot.today
    return SnapshotOut(
        state=snapshot.state,
        start_date=format_day(snapshot.record.start_date) if snapshot.record else None,
        longest_streak=snapshot.longest_streak,
        current_run=snapshot.current_run,
        alive=snapshot.alive,
        today_completed=bool(today and today.completed),
        today_target_reps=today.target_reps if today else None,
        today_index=snapshot.today_index,
        next_action_hint=snapshot.next_action_hint,
        timeline=[
            TimelineEntryOut(
                date=format_day(entry.day),
                day_number=entry.day_number,
                target_reps=entry.target_reps,
                completed=entry.completed,
                completed_at=entry.completed_at,
                is_today=entry.is_today,
            )
            for entry in snapshot.timeline
        ],
    )


def _transition_out(service: ChallengeService, user_id: str, result: TransitionResult) -> TransitionOut:
    return TransitionOut(
        snapshot=_snapshot_out(service.snapshot(user_id)),
        changed=result.changed,
        emitted=result.emitted,
    )


@router.get("/v1/challenge", response_model=SnapshotOut)
def get_challenge(
    user_id: str = Depends(current_user_id),
    service: ChallengeService = Depends(get_challenge_service),
):
    """Return the user's challenge with its day-by-day timeline."""
    return _snapshot_out(service.snapshot(user_id))


@router.post("/v1/challenge/start", response_model=TransitionOut)
def start_challenge(
    user_id: str = Depends(current_user_id),
    service: ChallengeService = Depends(get_challenge_service),
):
    return _transition_out(service, user_id, service.start(user_id))


@router.post("/v1/challenge/complete", response_model=TransitionOut)
def complete_today(
    user_id: str = Depends(current_user_id),
    service: ChallengeService = Depends(get_challenge_service),
):
    """Mark today's pushups as done (idempotent for the day)."""
    return _transition_out(service, user_id, service.complete_today(user_id))


@router.post("/v1/challenge/undo", response_model=TransitionOut)
def undo_today(
    user_id: str = Depends(current_user_id),
    service: ChallengeService = Depends(get_challenge_service),
):
    return _transition_out(service, user_id, service.undo_today(user_id))


@router.post("/v1/challenge/reset", response_model=TransitionOut)
def reset_challenge(
    user_id: str = Depends(current_user_id),
    service: ChallengeService = Depends(get_challenge_service),
):
    """Discard the day history and start again today. The longest streak is kept."""
    return _transition_out(service, user_id, service.reset(user_id))


@router.post("/v1/challenge/retry", response_model=TransitionOut)
def retry_save(
    user_id: str = Depends(current_user_id),
    service: ChallengeService = Depends(get_challenge_service),
):
    """Re-send the last record whose save failed."""
    return _transition_out(service, user_id, service.retry_save(user_id))
