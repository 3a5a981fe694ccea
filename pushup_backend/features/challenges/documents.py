"""
Serialized shape of a challenge record, as stored by the mobile client:

    {"startDate": "2024-01-01",
     "days": [{"date": "2024-01-01", "dayNumber": 1, "completedAt": "2024-01-01T07:30:00Z"}],
     "longestStreak": 1}
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Mapping

from pushup_backend.core.errors import InvalidChallengeState
from pushup_backend.features.streaks.calendar import days_between, format_day, format_instant, parse_day
from pushup_backend.models.challenge import ChallengeRecord, Completion

logger = logging.getLogger("pushup")


def _parse_instant(value: str) -> datetime:
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def to_document(record: ChallengeRecord) -> Dict[str, Any]:
    return {
        "startDate": format_day(record.start_date),
        "days": [
            {
                "date": format_day(c.day),
                "dayNumber": c.day_number,
                "completedAt": format_instant(c.completed_at),
            }
            for c in record.completions
        ],
        "longestStreak": record.longest_streak,
    }


def from_document(document: Mapping[str, Any]) -> ChallengeRecord:
    """Parse a stored document. Stored dayNumbers are recomputed from the start date."""
    try:
        start_date = parse_day(document["startDate"])
        completions = []
        for raw in document.get("days") or []:
            day = parse_day(raw["date"])
            day_number = days_between(start_date, day) + 1
            stored = raw.get("dayNumber")
            if stored is not None and stored != day_number:
                logger.warning(
                    "challenge.day_number_mismatch",
                    extra={"day": raw["date"], "stored_day_number": stored, "day_number": day_number},
                )
            completions.append(
                Completion(day=day, day_number=day_number, completed_at=_parse_instant(raw["completedAt"]))
            )
        longest = _parse_longest_streak(document.get("longestStreak"))
    except (AttributeError, KeyError, TypeError, ValueError) as exc:
        raise InvalidChallengeState(f"Malformed challenge document: {exc}") from exc

    return ChallengeRecord(start_date=start_date, completions=tuple(completions), longest_streak=longest)


def _parse_longest_streak(value: Any) -> int:
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"longestStreak must be an integer, got {value!r}")
    return value
