from datetime import date, timezone

import pytest

from pushup_backend.core.errors import AppError, InvalidChallengeState, InvalidTransition, PersistenceError
from pushup_backend.features.challenges.machine import ChallengeStateMachine
from pushup_backend.features.challenges.persistence import InMemoryChallengeStore
from pushup_backend.features.challenges.service import ChallengeService


class FlakyStore(InMemoryChallengeStore):
    """Memory store whose saves can be switched off."""

    def __init__(self):
        super().__init__()
        self.fail_saves = False
        self.saves = 0

    def save(self, user_id, record):
        if self.fail_saves:
            raise PersistenceError("document store unavailable")
        self.saves += 1
        super().save(user_id, record)


def test_snapshot_without_challenge(challenge_service):
    snapshot = challenge_service.snapshot("u1")
    assert snapshot.state == "no_challenge"
    assert snapshot.record is None
    assert snapshot.timeline == ()
    assert snapshot.today is None
    assert "Start the challenge" in snapshot.next_action_hint


def test_full_lifecycle_is_persisted(challenge_service, memory_store, clock):
    started = challenge_service.start("u1")
    assert started.changed
    assert started.emitted[0]["type"] == "challenge.started"
    assert memory_store.load("u1") == started.record

    for _ in range(3):
        result = challenge_service.complete_today("u1")
        assert result.changed
        clock.advance(days=1)

    # Now on 2024-01-04 with nothing completed yet
    snapshot = challenge_service.snapshot("u1")
    assert snapshot.state == "active"
    assert snapshot.current_run == 3
    assert snapshot.longest_streak == 3
    assert snapshot.today.day == date(2024, 1, 4)
    assert snapshot.today.target_reps == 4
    assert snapshot.next_action_hint == "Do 4 pushups today to keep the streak alive."

    clock.advance(days=1)
    broken = challenge_service.snapshot("u1")
    assert broken.state == "broken"
    assert not broken.alive
    assert broken.longest_streak == 3

    with pytest.raises(InvalidTransition):
        challenge_service.complete_today("u1")

    reset = challenge_service.reset("u1")
    assert reset.record.start_date == date(2024, 1, 5)
    assert reset.record.completions == ()
    assert reset.record.longest_streak == 3
    assert memory_store.load("u1") == reset.record


def test_repeat_completion_does_not_write(clock):
    store = FlakyStore()
    service = ChallengeService(store, tz=timezone.utc, clock=clock)
    service.start("u1")
    service.complete_today("u1")
    saves = store.saves

    again = service.complete_today("u1")
    assert not again.changed
    assert again.emitted == []
    assert store.saves == saves
    assert len(service.current("u1").completions) == 1


def test_undo_today(challenge_service):
    challenge_service.start("u1")
    challenge_service.complete_today("u1")

    undone = challenge_service.undo_today("u1")
    assert undone.changed
    assert undone.record.completions == ()
    assert undone.record.longest_streak == 1
    assert challenge_service.snapshot("u1").today.completed is False

    assert not challenge_service.undo_today("u1").changed


def test_failed_save_keeps_prior_record_and_allows_retry(clock):
    store = FlakyStore()
    service = ChallengeService(store, tz=timezone.utc, clock=clock)
    service.start("u1")
    before = service.current("u1")

    store.fail_saves = True
    with pytest.raises(PersistenceError):
        service.complete_today("u1")

    assert service.current("u1") == before
    assert service.snapshot("u1").today.completed is False
    pending = service.pending("u1")
    assert pending is not None and len(pending.completions) == 1

    store.fail_saves = False
    retried = service.retry_save("u1")
    assert retried.record == pending
    assert service.pending("u1") is None
    assert service.current("u1") == pending
    assert store.load("u1") == pending


def test_retry_without_anything_pending(challenge_service):
    with pytest.raises(AppError):
        challenge_service.retry_save("nobody")

    challenge_service.start("u1")
    assert not challenge_service.retry_save("u1").changed


def test_services_sharing_a_store_see_each_others_writes(memory_store, clock):
    phone = ChallengeService(memory_store, tz=timezone.utc, clock=clock)
    tablet = ChallengeService(memory_store, tz=timezone.utc, clock=clock)

    phone.start("u1")
    assert phone.snapshot("u1").today.completed is False

    tablet.complete_today("u1")
    snapshot = phone.snapshot("u1")
    assert snapshot.today.completed is True
    assert snapshot.longest_streak == 1

    # The phone's own completion is now a no-op against the stored record
    assert not phone.complete_today("u1").changed

    for user_id in ("u2", "u3", "u4"):
        phone.snapshot(user_id)
    # Reads keep no per-user state; only failed saves are held
    assert phone._pending == {}


def test_two_devices_completing_same_day_resolve_to_one_completion(memory_store, clock):
    machine = ChallengeStateMachine(timezone.utc)
    service = ChallengeService(memory_store, tz=timezone.utc, clock=clock)
    service.start("u1")

    # Both devices hold the same optimistic copy and complete today independently
    phone_copy = memory_store.load("u1")
    tablet_copy = memory_store.load("u1")
    memory_store.save("u1", machine.complete_today(phone_copy, now=clock()))
    clock.advance(hours=1)
    memory_store.save("u1", machine.complete_today(tablet_copy, now=clock()))

    record = service.current("u1")
    assert [c.day for c in record.completions] == [date(2024, 1, 1)]
    assert record.longest_streak == 1
    assert service.snapshot("u1").today.completed is True


def test_emitted_events_use_utc_z_timestamps(challenge_service):
    started = challenge_service.start("u1")
    payload = started.emitted[0]["payload"]
    assert payload["occurredAt"] == "2024-01-01T09:00:00Z"
    assert payload["startDate"] == "2024-01-01"


def test_corrupted_record_surfaces_and_reset_recovers(memory_store, challenge_service):
    memory_store.put_raw_document("u1", {"startDate": "2030-01-01", "days": [], "longestStreak": 9})

    with pytest.raises(InvalidChallengeState):
        challenge_service.snapshot("u1")
    with pytest.raises(InvalidChallengeState):
        challenge_service.complete_today("u1")

    fresh = challenge_service.reset("u1")
    assert fresh.record.start_date == date(2024, 1, 1)
    assert fresh.record.longest_streak == 9
    assert challenge_service.snapshot("u1").state == "active"
